"""Adding the selected object to the conversation.

When the user picks "Add to conversation" on an object, its details (and,
where the host accepts images, its picture) are pushed into the model
context.  Hosts that refuse images or structured data get a smaller update;
hosts that refuse the update entirely, or cannot take the image, get a chat
message asking the model to fetch the image with the ``get-museum-object``
tool instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Set

from met_explorer.core.data_models import StatusMessage
from met_explorer.core.schemas import ObjectRecord
from met_explorer.integrations.met_api import ImagePayload
from met_explorer.publishing.host import (
    ContextCapabilities,
    HostShell,
    host_failure,
    image_block,
    text_block,
)
from met_explorer.utils.formatters import format_object_details

OBJECT_CONTEXT_HEADER = "Met Museum object added from Met Explorer:"

ADDED_WITH_IMAGE = "Object details and image were added to model context."
ADDED_TEXT = "Object details were added to model context."
ADDED_MESSAGE_SENT = (
    "Object details were added. Sent a follow-up chat message so the model can fetch "
    "image context via tool call."
)
ADDED_NO_IMAGE_SUPPORT = (
    "Object details were added, but this host does not accept image context blocks."
)
ADDED_IMAGE_REJECTED = "Object details were added, but image context was rejected by this host."
MESSAGE_SENT = "Sent a follow-up chat message so the model can fetch image context via tool call."


@dataclass(frozen=True)
class _MessageFallback:
    handled: bool
    error: Optional[BaseException] = None


def supports_images(channel: Optional[ContextCapabilities]) -> bool:
    """Whether images may be sent; unknown channels are assumed to accept them."""
    return channel.image if channel else True


def object_context_id(record: Optional[ObjectRecord]) -> Optional[str]:
    if record is None:
        return None
    normalized = str(record.object_id).strip()
    return normalized or None


class ObjectContextSender:
    """Pushes a selected object into the host's model context."""

    def __init__(self, host: HostShell, source: str = "met-explorer-app") -> None:
        self.host = host
        self.source = source
        self.added_object_ids: Set[str] = set()
        self.is_adding = False
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_added(self, record: Optional[ObjectRecord]) -> bool:
        object_id = object_context_id(record)
        return object_id is not None and object_id in self.added_object_ids

    def can_add(self, record: Optional[ObjectRecord]) -> bool:
        return record is not None and not self.is_adding and not self.is_added(record)

    def _mark_added(self, record: ObjectRecord) -> None:
        object_id = object_context_id(record)
        if object_id:
            self.added_object_ids.add(object_id)

    async def add(
        self,
        record: Optional[ObjectRecord],
        image: Optional[ImagePayload] = None,
    ) -> Optional[StatusMessage]:
        """Add ``record`` (and ``image`` when possible) to the model context.

        Returns:
            The status to show, or ``None`` when there was nothing to do
        """
        if record is None or self.is_adding:
            return None

        capabilities = self.host.get_host_capabilities()
        channel = capabilities.update_model_context if capabilities else None
        details = format_object_details(record, header=OBJECT_CONTEXT_HEADER)
        has_image = image is not None
        can_send_image = has_image and supports_images(channel)
        can_send_structured = bool(channel and channel.structured_content)

        content = [text_block(details)]
        if image is not None and can_send_image:
            content.append(image_block(image.data, image.mime_type))

        self.is_adding = True
        try:
            try:
                await self.host.update_model_context(
                    content=content,
                    structured_content=(
                        {
                            "source": self.source,
                            "object": record.model_dump(by_alias=True),
                            "hasEmbeddedImage": can_send_image,
                        }
                        if can_send_structured
                        else None
                    ),
                )
            except Exception as exc:
                self.logger.debug("Object context update rejected: %s", exc)
                return await self._recover(record, details, has_image, exc)

            self._mark_added(record)
            if can_send_image:
                return StatusMessage(ADDED_WITH_IMAGE)
            if has_image:
                outcome = await self._message_fallback(record, details)
                if outcome.error is not None:
                    return StatusMessage(host_failure(outcome.error).user_message, True)
                if outcome.handled:
                    return StatusMessage(ADDED_MESSAGE_SENT)
                return StatusMessage(ADDED_NO_IMAGE_SUPPORT)
            return StatusMessage(ADDED_TEXT)
        finally:
            self.is_adding = False

    async def _recover(
        self,
        record: ObjectRecord,
        details: str,
        has_image: bool,
        initial_error: BaseException,
    ) -> StatusMessage:
        """Degrade after the full update was rejected."""
        if not has_image:
            status = await self._message_fallback_status(record, details)
            return status or StatusMessage(host_failure(initial_error).user_message, True)

        try:
            await self.host.update_model_context(content=[text_block(details)])
        except Exception as retry_error:
            self.logger.debug("Text-only object context update rejected: %s", retry_error)
            status = await self._message_fallback_status(record, details)
            return status or StatusMessage(host_failure(retry_error).user_message, True)

        self._mark_added(record)
        status = await self._message_fallback_status(record, details)
        return status or StatusMessage(ADDED_IMAGE_REJECTED)

    async def _message_fallback_status(
        self, record: ObjectRecord, details: str
    ) -> Optional[StatusMessage]:
        outcome = await self._message_fallback(record, details)
        if not outcome.handled:
            return None
        if outcome.error is not None:
            return StatusMessage(host_failure(outcome.error).user_message, True)
        return StatusMessage(MESSAGE_SENT)

    async def _message_fallback(self, record: ObjectRecord, details: str) -> _MessageFallback:
        """Ask the model, via a chat message, to fetch the image itself."""
        capabilities = self.host.get_host_capabilities()
        if capabilities is None or not capabilities.message_text:
            return _MessageFallback(handled=False)

        instruction = (
            f'Please call the "get-museum-object" tool with '
            f'{{"objectId": {record.object_id}, "returnImage": true}} '
            "so you can view its image."
        )
        try:
            await self.host.send_message(
                "user",
                [text_block(f"{instruction}\n\nReference details:\n{details}")],
            )
        except Exception as exc:
            self.logger.debug("App message rejected: %s", exc)
            return _MessageFallback(handled=True, error=exc)

        self._mark_added(record)
        return _MessageFallback(handled=True)
