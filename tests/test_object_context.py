"""Tests for adding a selected object to the conversation."""

import pytest

from met_explorer.integrations.met_api import ImagePayload
from met_explorer.publishing.host import ContextCapabilities, HostCapabilities
from met_explorer.publishing.object_context import (
    ADDED_IMAGE_REJECTED,
    ADDED_MESSAGE_SENT,
    ADDED_NO_IMAGE_SUPPORT,
    ADDED_TEXT,
    ADDED_WITH_IMAGE,
    MESSAGE_SENT,
    OBJECT_CONTEXT_HEADER,
    ObjectContextSender,
)

IMAGE = ImagePayload(data="aGVsbG8=", mime_type="image/jpeg")


def capabilities(image=True, structured=True, message=True):
    return HostCapabilities(
        update_model_context=ContextCapabilities(
            text=True, image=image, structured_content=structured
        ),
        message_text=message,
    )


class TestObjectContextSender:
    """Tests for ObjectContextSender class."""

    @pytest.mark.asyncio
    async def test_nothing_selected(self, host_factory):
        """Test that adding without a selection does nothing."""
        host = host_factory(capabilities())
        assert await ObjectContextSender(host).add(None) is None
        assert host.attempts == []

    @pytest.mark.asyncio
    async def test_adds_details_image_and_structure(self, sample_record, host_factory):
        """Test a host that accepts everything."""
        host = host_factory(capabilities())
        sender = ObjectContextSender(host)

        status = await sender.add(sample_record, IMAGE)

        assert status.message == ADDED_WITH_IMAGE
        assert not status.is_error
        content = host.updates[0]["content"]
        assert content[0]["text"].startswith(OBJECT_CONTEXT_HEADER)
        assert "- Title: Sunflowers" in content[0]["text"]
        assert content[1] == {"type": "image", "data": "aGVsbG8=", "mimeType": "image/jpeg"}
        structured = host.updates[0]["structuredContent"]
        assert structured["object"]["objectID"] == 436524
        assert structured["hasEmbeddedImage"] is True
        assert sender.is_added(sample_record)
        assert not sender.can_add(sample_record)

    @pytest.mark.asyncio
    async def test_text_only_without_image(self, sample_record, host_factory):
        """Test adding an object that has no image."""
        host = host_factory(capabilities(structured=False))
        status = await ObjectContextSender(host).add(sample_record)

        assert status.message == ADDED_TEXT
        assert host.updates[0]["structuredContent"] is None

    @pytest.mark.asyncio
    async def test_image_unsupported_sends_message(self, sample_record, host_factory):
        """Test that hosts without image support get a follow-up message."""
        host = host_factory(capabilities(image=False))
        status = await ObjectContextSender(host).add(sample_record, IMAGE)

        assert status.message == ADDED_MESSAGE_SENT
        assert len(host.updates[0]["content"]) == 1
        message_text = host.messages[0]["content"][0]["text"]
        assert '"objectId": 436524' in message_text
        assert "get-museum-object" in message_text

    @pytest.mark.asyncio
    async def test_image_unsupported_without_messages(self, sample_record, host_factory):
        """Test the status when neither images nor messages are possible."""
        host = host_factory(capabilities(image=False, message=False))
        status = await ObjectContextSender(host).add(sample_record, IMAGE)

        assert status.message == ADDED_NO_IMAGE_SUPPORT
        assert host.messages == []

    @pytest.mark.asyncio
    async def test_rejected_image_retries_text_only(self, sample_record, host_factory):
        """Test that an image rejection retries with details only."""
        host = host_factory(capabilities(message=False), reject={"image"})
        sender = ObjectContextSender(host)

        status = await sender.add(sample_record, IMAGE)

        assert status.message == ADDED_IMAGE_REJECTED
        assert host.attempts == ["combined", "content"]
        assert sender.is_added(sample_record)

    @pytest.mark.asyncio
    async def test_everything_rejected_falls_back_to_message(self, sample_record, host_factory):
        """Test the chat-message fallback when all context updates fail."""
        host = host_factory(capabilities(), reject={"all"})
        sender = ObjectContextSender(host)

        status = await sender.add(sample_record, IMAGE)

        assert status.message == MESSAGE_SENT
        assert sender.is_added(sample_record)

    @pytest.mark.asyncio
    async def test_everything_rejected_reports_error(self, sample_record, host_factory):
        """Test the error status when no fallback is available."""
        host = host_factory(capabilities(message=False), reject={"all"})
        sender = ObjectContextSender(host)

        status = await sender.add(sample_record)

        assert status.is_error
        assert status.message == "The host did not accept the update."
        assert not sender.is_added(sample_record)
        assert not sender.is_adding

    @pytest.mark.asyncio
    async def test_failed_message_reports_host_text(self, sample_record, host_factory):
        """Test that a user-safe host rejection is shown verbatim."""
        host = host_factory(capabilities(), reject={"all", "message"})
        status = await ObjectContextSender(host).add(sample_record)

        assert status.is_error
        assert status.message == "message refused"
