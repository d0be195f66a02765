"""Publishing the visible results to the host.

After a results page finishes loading, the explorer tells the host which
objects are on screen so the model can talk about them without searching
again.  Hosts accept different shapes, so ``ContextPublisher`` walks an
ordered list of delivery strategies and stops at the first that works:

1. the host's widget-state side channel
2. text content plus structured data through ``update_model_context``
3. text content only
4. structured data only

A host capability descriptor, when present, lets unsupported strategies be
skipped without trying them.  Publishing is best-effort: if nothing is
accepted the previous signature is kept and a warning is logged.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from met_explorer.core.data_models import ResultCard, SearchRequest
from met_explorer.core.outcomes import CallFailure
from met_explorer.publishing.host import (
    ContentBlock,
    ContextCapabilities,
    HostCapabilities,
    HostShell,
    host_failure,
    text_block,
)
from met_explorer.utils.formatters import format_results_context

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "met-explorer-app"
VISIBLE_RESULTS_TYPE = "visible-results-page"


@dataclass(frozen=True)
class ContextPayload:
    """What the host should know about the visible results.

    ``capabilities`` is the host's descriptor as it stood when the payload
    was built; ``None`` means the host gave none and delivery finds out by
    trying.  ``image`` is an optional image content block, sent only to a
    channel that declares image support.  Built fresh for every publish and
    never mutated.
    """

    text: str
    structured: Mapping[str, Any]
    key: str = ""
    capabilities: Optional[HostCapabilities] = None
    image: Optional[ContentBlock] = None

    @property
    def signature(self) -> str:
        """Fingerprint of the payload content, for skipping re-publication."""
        canonical = json.dumps(
            {
                "key": self.key,
                "text": self.text,
                "structured": self.structured,
                "capabilities": asdict(self.capabilities) if self.capabilities else None,
                "image": self.image,
            },
            sort_keys=True,
            default=str,
        )
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
        return f"{self.key}|{digest}"

    def content_blocks(self, channel: Optional[ContextCapabilities]) -> List[ContentBlock]:
        blocks = [text_block(self.text)]
        if self.image is not None and channel is not None and channel.image:
            blocks.append(self.image)
        return blocks

    @classmethod
    def for_results(
        cls,
        request: Optional[SearchRequest],
        cards: Sequence[ResultCard],
        page: int,
        page_size: int,
        total_pages: int,
        total_results: int,
        source: str = DEFAULT_SOURCE,
        capabilities: Optional[HostCapabilities] = None,
    ) -> Optional["ContextPayload"]:
        """Build the payload for a results page; ``None`` when nothing is visible."""
        if request is None or not cards:
            return None

        structured = {
            "source": source,
            "type": VISIBLE_RESULTS_TYPE,
            "query": request.q,
            "hasImages": request.has_images,
            "titleOnly": request.title,
            "departmentId": request.department_id,
            "page": page,
            "pageSize": page_size,
            "totalPages": max(total_pages, 1),
            "totalResults": total_results,
            "results": [
                {
                    "objectID": card.object_id,
                    "title": card.title,
                    "artistDisplayName": card.artist_display_name,
                    "department": card.department,
                }
                for card in cards
            ],
        }
        text = format_results_context(request, cards, page, total_pages, total_results)
        return cls(
            text=text,
            structured=structured,
            key=f"{request.q}|{page}",
            capabilities=capabilities,
        )


Strategy = Tuple[
    str, Callable[[ContextPayload, str, Optional[HostCapabilities]], Awaitable[None]]
]


@dataclass
class PublishReport:
    """Record of one publish call, kept for diagnostics."""

    signature: Optional[str]
    published: bool
    strategy: Optional[str] = None
    skipped: List[str] = field(default_factory=list)
    failures: List[Tuple[str, CallFailure]] = field(default_factory=list)
    superseded: bool = False


class ContextPublisher:
    """Delivers ``ContextPayload`` values to a host with graceful degradation.

    Publishes may overlap while a host call is awaited.  Each one takes a
    sequence number; only the newest publish to start may record its
    signature, and when an older delivery lands after a newer one the newest
    payload is delivered again so the host ends on the latest results.
    """

    def __init__(self, host: HostShell, source: str = DEFAULT_SOURCE) -> None:
        self.host = host
        self.source = source
        self.last_signature: Optional[str] = None
        self.last_report: Optional[PublishReport] = None
        self.delivery_attempts = 0
        self._sequence = 0
        self._delivered_sequence = 0
        self._delivered_payload: Optional[ContextPayload] = None
        self._in_flight = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    async def publish(self, payload: Optional[ContextPayload]) -> Optional[str]:
        """Publish ``payload`` unless it matches what was last published.

        Returns:
            The new signature on success, otherwise the previous one
            (``None`` if nothing was ever published).  A publish overtaken by
            a newer one also returns the previous signature.  Never raises
            for host failures.
        """
        if payload is None:
            return self.last_signature

        signature = payload.signature
        if signature == self.last_signature and not self._in_flight:
            self.logger.debug("Context unchanged (%s), skipping publish", signature)
            return self.last_signature

        self._sequence += 1
        sequence = self._sequence
        self.delivery_attempts += 1

        self._in_flight += 1
        try:
            report = await self._deliver(payload, signature)
        finally:
            self._in_flight -= 1

        if sequence < self._sequence:
            report.superseded = True
            self.logger.debug("Context publish %s overtaken by a newer publish", signature)
            if report.published and self._delivered_sequence > sequence:
                await self._redeliver_newest()
            return self.last_signature

        self.last_report = report
        if not report.published:
            self.logger.warning(
                "Failed to publish results context (tried=%s, skipped=%s)",
                [name for name, _ in report.failures],
                report.skipped,
            )
            return self.last_signature

        self._delivered_sequence = sequence
        self._delivered_payload = payload
        self.last_signature = signature
        return signature

    def reset(self) -> None:
        """Forget the last published signature."""
        self.last_signature = None

    async def _deliver(self, payload: ContextPayload, signature: str) -> PublishReport:
        """Walk the strategies until one is accepted."""
        capabilities = payload.capabilities
        if capabilities is None:
            capabilities = self.host.get_host_capabilities()
        report = PublishReport(signature=self.last_signature, published=False)

        for name, deliver in self._strategies():
            if not self._is_supported(name, capabilities):
                report.skipped.append(name)
                continue
            try:
                await deliver(payload, signature, capabilities)
            except Exception as exc:
                failure = host_failure(exc)
                report.failures.append((name, failure))
                self.logger.debug("Context publish via %s rejected: %s", name, failure.message)
                continue

            self.logger.debug("Synced results context via %s", name)
            report.signature = signature
            report.published = True
            report.strategy = name
            return report

        return report

    async def _redeliver_newest(self) -> None:
        newest = self._delivered_payload
        if newest is None:
            return
        self.logger.debug("Stale context landed last, re-sending %s", newest.signature)
        self.delivery_attempts += 1
        report = await self._deliver(newest, newest.signature)
        if not report.published:
            self.logger.warning("Could not restore the latest results context after a stale update")

    def _strategies(self) -> List[Strategy]:
        return [
            ("widget_state", self._deliver_widget_state),
            ("content+structured", self._deliver_combined),
            ("content", self._deliver_content),
            ("structured", self._deliver_structured),
        ]

    def _is_supported(self, name: str, capabilities: Optional[HostCapabilities]) -> bool:
        """Decide whether a strategy is worth trying.

        Without a descriptor every context strategy is tried; the widget
        channel is still only tried when the host has one.
        """
        if name == "widget_state":
            if capabilities is None:
                return self.host.supports_widget_state
            return capabilities.widget_state

        if capabilities is None:
            return True

        channel = capabilities.update_model_context
        if channel is None:
            return False
        if name == "content+structured":
            return channel.text and channel.structured_content
        if name == "content":
            return channel.text
        return channel.structured_content

    async def _deliver_widget_state(
        self, payload: ContextPayload, signature: str, capabilities: Optional[HostCapabilities]
    ) -> None:
        current: Dict[str, Any] = dict(self.host.widget_state or {})
        private = current.get("privateContent")
        private = dict(private) if isinstance(private, Mapping) else {}

        private["metExplorer"] = {
            "signature": signature,
            "visibleResults": dict(payload.structured),
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.host.set_widget_state(
            {
                **current,
                "modelContent": {
                    "source": self.source,
                    "type": VISIBLE_RESULTS_TYPE,
                    "summary": payload.text,
                    "visibleResults": dict(payload.structured),
                },
                "privateContent": private,
            }
        )

    async def _deliver_combined(
        self, payload: ContextPayload, signature: str, capabilities: Optional[HostCapabilities]
    ) -> None:
        channel = capabilities.update_model_context if capabilities else None
        await self.host.update_model_context(
            content=payload.content_blocks(channel),
            structured_content=dict(payload.structured),
        )

    async def _deliver_content(
        self, payload: ContextPayload, signature: str, capabilities: Optional[HostCapabilities]
    ) -> None:
        channel = capabilities.update_model_context if capabilities else None
        await self.host.update_model_context(content=payload.content_blocks(channel))

    async def _deliver_structured(
        self, payload: ContextPayload, signature: str, capabilities: Optional[HostCapabilities]
    ) -> None:
        await self.host.update_model_context(structured_content=dict(payload.structured))
