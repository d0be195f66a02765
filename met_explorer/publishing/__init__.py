"""Host publishing for Met Explorer.

Keeps the hosting chat client informed: the visible results page after each
search, and individual objects the user adds to the conversation.
"""

from met_explorer.publishing.host import (
    ContextCapabilities,
    HostCapabilities,
    HostRejectedError,
    HostShell,
    LoggingHostShell,
)
from met_explorer.publishing.context_publisher import ContextPayload, ContextPublisher
from met_explorer.publishing.object_context import ObjectContextSender

__all__ = [
    "ContextCapabilities",
    "HostCapabilities",
    "HostRejectedError",
    "HostShell",
    "LoggingHostShell",
    "ContextPayload",
    "ContextPublisher",
    "ObjectContextSender",
]
