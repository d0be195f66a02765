"""Integration modules for Met Explorer.

- Met collection API (departments, search, objects, images)
"""

from met_explorer.integrations.met_api import (
    MET_API_BASE_URL,
    ImagePayload,
    MetMuseumAPI,
)

__all__ = ["MET_API_BASE_URL", "ImagePayload", "MetMuseumAPI"]
