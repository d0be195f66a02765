"""Shared fixtures for the Met Explorer test suite."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import pytest

import met_explorer.core.config as config_module
from met_explorer.core.rate_limiter import set_rate_limiter
from met_explorer.core.schemas import ObjectRecord
from met_explorer.publishing.host import (
    ContentBlock,
    HostCapabilities,
    HostRejectedError,
    HostShell,
)


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """Give every test a fresh global rate limiter and config."""
    set_rate_limiter(None)
    monkeypatch.setattr(config_module, "_global_config", None)
    for name in ("MET_API_TIMEOUT_MS", "API_TIMEOUT_SECONDS", "LOGGING_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    set_rate_limiter(None)


def object_payload(object_id: int, **overrides: Any) -> Dict[str, Any]:
    """A Met object record as the API returns it."""
    payload: Dict[str, Any] = {
        "objectID": object_id,
        "title": f"Object {object_id}",
        "artistDisplayName": f"Artist {object_id}",
        "department": "European Paintings",
        "objectDate": "1889",
        "medium": "Oil on canvas",
        "primaryImage": f"https://images.example/{object_id}.jpg",
        "primaryImageSmall": f"https://images.example/{object_id}-small.jpg",
        "objectURL": f"https://www.metmuseum.org/art/collection/search/{object_id}",
        "tags": None,
        "creditLine": None,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def sample_record() -> ObjectRecord:
    return ObjectRecord.model_validate(
        object_payload(
            436524,
            title="Sunflowers",
            artistDisplayName="Vincent van Gogh",
            tags=[{"term": "Flowers"}, {"term": "Sunflowers"}],
        )
    )


class RecordingHost(HostShell):
    """Host double that records deliveries and rejects selected shapes.

    Args:
        capabilities: Descriptor returned to callers (``None`` for unknown)
        reject: Names of delivery shapes to refuse: ``"combined"``,
            ``"content"``, ``"structured"``, ``"image"``, ``"widget"``,
            ``"message"`` or ``"all"``
        widget: Whether the widget-state channel exists
    """

    def __init__(
        self,
        capabilities: Optional[HostCapabilities] = None,
        reject: Optional[set] = None,
        widget: bool = False,
    ) -> None:
        self.capabilities = capabilities
        self.reject = set(reject or ())
        self.widget = widget
        self.state: Optional[Dict[str, Any]] = None
        self.updates: List[Dict[str, Any]] = []
        self.messages: List[Dict[str, Any]] = []
        self.attempts: List[str] = []

    def get_host_capabilities(self) -> Optional[HostCapabilities]:
        return self.capabilities

    @property
    def supports_widget_state(self) -> bool:
        return self.widget

    @property
    def widget_state(self) -> Optional[Mapping[str, Any]]:
        return self.state

    def set_widget_state(self, state: Mapping[str, Any]) -> None:
        self.attempts.append("widget")
        if not self.widget or "widget" in self.reject:
            raise HostRejectedError("widget state refused")
        self.state = dict(state)

    async def update_model_context(
        self,
        content: Optional[List[ContentBlock]] = None,
        structured_content: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if content and structured_content is not None:
            shape = "combined"
        elif content:
            shape = "content"
        else:
            shape = "structured"
        self.attempts.append(shape)

        has_image = any(block.get("type") == "image" for block in content or [])
        if "all" in self.reject or shape in self.reject or (has_image and "image" in self.reject):
            raise HostRejectedError(f"{shape} refused")
        self.updates.append({"content": content, "structuredContent": structured_content})

    async def send_message(self, role: str, content: List[ContentBlock]) -> None:
        self.attempts.append("message")
        if "message" in self.reject:
            raise HostRejectedError("message refused", user_safe=True)
        self.messages.append({"role": role, "content": content})


@pytest.fixture
def host_factory():
    """Build ``RecordingHost`` instances."""
    return RecordingHost


@pytest.fixture
def object_json():
    """Build Met object payloads: ``object_json(id, **overrides)``."""
    return object_payload
