"""Unit tests for data models."""

from datetime import datetime, timezone

import pytest

from email_sync_engine.models import (
    Address,
    Attachment,
    CacheEntry,
    ConversationView,
    LabelNode,
    ListPage,
    Message,
)


class TestMessage:
    """Test suite for Message model."""

    def test_message_creation(self) -> None:
        """Test creating a Message instance."""
        message = Message(
            id="msg123",
            thread_id="thread456",
            sender=Address(name="Alice", email="Alice@Example.com"),
            subject="Test Email",
            body="<p>This is a test email.</p>",
            date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            label_ids=["INBOX", "UNREAD"],
        )

        assert message.id == "msg123"
        assert message.sender_email == "alice@example.com"
        assert message.timestamp_ms == 1735689600000
        assert len(message.label_ids) == 2

    def test_message_json_round_trip_keeps_timezone(self) -> None:
        """Test that dates survive serialization as timezone-aware values."""
        message = Message(id="m", thread_id="t", date=datetime(2025, 1, 1, 12, tzinfo=timezone.utc))

        restored = Message.model_validate_json(message.model_dump_json())

        assert restored.date == message.date
        assert restored.date.tzinfo is not None


class TestAddress:
    """Test suite for Address model."""

    def test_str_with_display_name(self) -> None:
        assert str(Address(name="Bob", email="bob@example.com")) == "Bob <bob@example.com>"

    def test_str_without_display_name(self) -> None:
        assert str(Address(email="bob@example.com")) == "bob@example.com"


class TestAttachment:
    """Test suite for Attachment model."""

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(Exception):  # Pydantic ValidationError
            Attachment(name="a.pdf", size=-1)


class TestCacheEntry:
    """Test suite for CacheEntry model."""

    def test_list_page_payload_serializes(self) -> None:
        """Test that a ListPage payload is written as plain JSON."""
        page = ListPage(messages=[Message(id="m1", thread_id="t1")], next_page_token="tok")
        entry = CacheEntry(payload=page, timestamp=1, profile_id="p1", key="in:inbox")

        restored = CacheEntry.model_validate_json(entry.model_dump_json())

        assert restored.payload["next_page_token"] == "tok"
        assert ListPage.model_validate(restored.payload).messages[0].id == "m1"


class TestLabelNode:
    """Test suite for LabelNode model."""

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(Exception):  # Pydantic ValidationError
            LabelNode(name="A", full_path="A", count=-1)


class TestConversationView:
    """Test suite for ConversationView model."""

    def test_attachment_count(self) -> None:
        view = ConversationView(
            thread_id="t1",
            attachments=[Attachment(name="a.pdf", size=1000), Attachment(name="b.pdf", size=1000)],
        )

        assert view.attachment_count == 2
