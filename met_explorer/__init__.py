"""Met Explorer - browse The Met's open-access collection.

Searches the Met collection API, hydrates result pages with bounded
concurrency, and keeps a hosting chat client informed of what is on screen.
"""

__version__ = "0.1.0"
__author__ = "Met Explorer Contributors"

from met_explorer.core.orchestrator import ExplorerController
from met_explorer.core.data_models import ResultCard, SearchRequest

__all__ = ["ExplorerController", "ResultCard", "SearchRequest", "__version__"]
