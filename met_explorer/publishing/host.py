"""Hosting shell abstraction.

The explorer runs inside a host (a chat client embedding the widget) that
can be told what the user is looking at.  Hosts differ in what they accept:
some expose a widget-state side channel, some accept only text blocks, some
only structured data, some reject images.  ``HostCapabilities`` is the
explicit descriptor a host may publish; ``None`` means the host did not say,
and callers must find out by trying.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from met_explorer.core.outcomes import CallFailure, FailureKind

ContentBlock = Dict[str, Any]


def text_block(text: str) -> ContentBlock:
    return {"type": "text", "text": text}


def image_block(data: str, mime_type: str) -> ContentBlock:
    return {"type": "image", "data": data, "mimeType": mime_type}


@dataclass(frozen=True)
class ContextCapabilities:
    """Payload shapes accepted by the generic context channel."""

    text: bool = True
    image: bool = False
    structured_content: bool = False


@dataclass(frozen=True)
class HostCapabilities:
    """Capability descriptor published by a host.

    Attributes
    ----------
    update_model_context : ContextCapabilities, optional
        Shapes accepted by ``update_model_context``; ``None`` when the host
        has no generic context channel.
    message_text : bool
        Whether the host accepts text chat messages from the app.
    widget_state : bool
        Whether the host exposes the widget-state side channel.
    """

    update_model_context: Optional[ContextCapabilities] = None
    message_text: bool = False
    widget_state: bool = False


class HostRejectedError(Exception):
    """Raised by a host that refuses a delivery."""

    def __init__(self, message: str, user_safe: bool = False) -> None:
        super().__init__(message)
        self.user_safe = user_safe


def host_failure(exception: BaseException) -> CallFailure:
    """Classify a failed delivery as ``HOST_REJECTED``."""
    user_safe = isinstance(exception, HostRejectedError) and exception.user_safe
    return CallFailure(
        kind=FailureKind.HOST_REJECTED,
        message=str(exception) or type(exception).__name__,
        user_safe=user_safe,
    )


class HostShell(ABC):
    """Interface to the host embedding the explorer."""

    def get_host_capabilities(self) -> Optional[HostCapabilities]:
        """Return the host's capability descriptor, or ``None`` if unknown."""
        return None

    @property
    def supports_widget_state(self) -> bool:
        """Whether ``set_widget_state`` is available at all."""
        return False

    @property
    def widget_state(self) -> Optional[Mapping[str, Any]]:
        """Current widget state, if the host keeps one."""
        return None

    def set_widget_state(self, state: Mapping[str, Any]) -> None:
        """Replace the widget state (side channel)."""
        raise HostRejectedError("Host has no widget state channel")

    @abstractmethod
    async def update_model_context(
        self,
        content: Optional[List[ContentBlock]] = None,
        structured_content: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Update the model-visible context.  Raises on rejection."""

    async def send_message(self, role: str, content: List[ContentBlock]) -> None:
        """Post a chat message on the user's behalf.  Raises on rejection."""
        raise HostRejectedError("Host does not accept app messages")


@dataclass
class LoggingHostShell(HostShell):
    """Host for terminal use: accepts text and structured context and logs it."""

    capabilities: HostCapabilities = field(
        default_factory=lambda: HostCapabilities(
            update_model_context=ContextCapabilities(text=True, structured_content=True),
            message_text=True,
        )
    )
    contexts: List[Dict[str, Any]] = field(default_factory=list)
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_host_capabilities(self) -> Optional[HostCapabilities]:
        return self.capabilities

    async def update_model_context(
        self,
        content: Optional[List[ContentBlock]] = None,
        structured_content: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.contexts.append({"content": content, "structuredContent": structured_content})
        text = "\n".join(b["text"] for b in content or [] if b.get("type") == "text")
        self.logger.info("Model context updated:\n%s", text)
        if structured_content is not None:
            self.logger.debug("Structured context: %s", json.dumps(structured_content, default=str))

    async def send_message(self, role: str, content: List[ContentBlock]) -> None:
        self.messages.append({"role": role, "content": content})
        self.logger.info("Message sent as %s (%d blocks)", role, len(content))
