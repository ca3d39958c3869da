"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from email_sync_engine.exceptions import GmailAPIError
from email_sync_engine.models import (
    Address,
    Attachment,
    LabelInfo,
    ListPage,
    Message,
    OutgoingAttachment,
    SendResult,
)

BASE_DATE = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeMailProvider:
    """In-memory mail provider recording every call."""

    def __init__(self) -> None:
        self.pages: dict[tuple[str, str | None], ListPage] = {}
        self.messages: dict[str, Message] = {}
        self.threads: dict[str, list[Message]] = {}
        self.labels: list[LabelInfo] = []
        self.attachments: dict[tuple[str, str], bytes] = {}
        self.failures: dict[str, Exception] = {}
        self.send_success = True
        self.send_delay = 0.0
        self.before_list_returns: Callable[[], Awaitable[None]] | None = None

        self.list_calls: list[dict[str, Any]] = []
        self.sent: list[dict[str, Any]] = []
        self.label_mutations: list[tuple[str, list[str], list[str]]] = []
        self.read_states: list[tuple[str, bool]] = []
        self.starred: list[tuple[str, bool]] = []
        self.trashed: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.get(operation)
        if error is not None:
            raise error

    async def list_messages(
        self,
        query: str,
        max_results: int | None = None,
        page_token: str | None = None,
        *,
        format: str = "full",
    ) -> ListPage:
        self.list_calls.append(
            {"query": query, "max_results": max_results, "page_token": page_token, "format": format}
        )
        await asyncio.sleep(0)
        self._maybe_fail("list_messages")
        if self.before_list_returns is not None:
            await self.before_list_returns()
        page = self.pages.get((query, page_token), ListPage())
        return page.model_copy(deep=True)

    async def get_message(self, message_id: str) -> Message:
        self._maybe_fail("get_message")
        if message_id not in self.messages:
            raise GmailAPIError(f"Message not found: {message_id}")
        return self.messages[message_id].model_copy(deep=True)

    async def get_thread(self, thread_id: str) -> list[Message]:
        self._maybe_fail("get_thread")
        return [m.model_copy(deep=True) for m in self.threads.get(thread_id, [])]

    async def send_message(
        self,
        to: str,
        cc: str,
        subject: str,
        body_html: str,
        attachments: Sequence[OutgoingAttachment] = (),
        thread_id: str | None = None,
    ) -> SendResult:
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        else:
            await asyncio.sleep(0)
        self._maybe_fail("send_message")
        self.sent.append(
            {
                "to": to,
                "cc": cc,
                "subject": subject,
                "body_html": body_html,
                "attachments": list(attachments),
                "thread_id": thread_id,
            }
        )
        if not self.send_success:
            return SendResult(success=False)
        return SendResult(success=True, thread_id=thread_id or "new-thread", message_id=f"sent-{len(self.sent)}")

    async def mutate_labels(
        self, message_id: str, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None:
        self._maybe_fail("mutate_labels")
        self.label_mutations.append((message_id, list(add), list(remove)))

    async def set_read_state(self, message_id: str, read: bool) -> None:
        self._maybe_fail("set_read_state")
        self.read_states.append((message_id, read))

    async def set_starred(self, message_id: str, starred: bool) -> None:
        self._maybe_fail("set_starred")
        self.starred.append((message_id, starred))

    async def trash(self, message_id: str) -> None:
        self._maybe_fail("trash")
        self.trashed.append(message_id)

    async def list_labels(self) -> list[LabelInfo]:
        self._maybe_fail("list_labels")
        return list(self.labels)

    async def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        self._maybe_fail("get_attachment")
        return self.attachments[(message_id, attachment_id)]


@pytest.fixture
def mock_settings(tmp_path):
    """Provide settings for testing with a temporary cache database."""
    from email_sync_engine.config import Settings

    return Settings(
        cache_db_path=tmp_path / "cache.sqlite3",
        auto_reply_internal_addresses=["me@example.com"],
        auto_reply_internal_markers=["david", "marti"],
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeMailProvider:
    return FakeMailProvider()


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Factory for messages with sensible defaults."""

    def _make(
        message_id: str = "m1",
        thread_id: str = "t1",
        sender: str = "alice@example.com",
        subject: str = "Hello",
        body: str = "<p>Hello there, this is a message body.</p>",
        minutes: int = 0,
        is_read: bool = True,
        label_ids: list[str] | None = None,
        attachments: list[Attachment] | None = None,
    ) -> Message:
        return Message(
            id=message_id,
            thread_id=thread_id,
            sender=Address(name=sender.split("@")[0].title(), email=sender),
            to=[Address(name="Me", email="me@example.com")],
            subject=subject,
            body=body,
            date=BASE_DATE + timedelta(minutes=minutes),
            is_read=is_read,
            label_ids=label_ids or ["INBOX"],
            attachments=attachments or [],
        )

    return _make


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def sample_email_data() -> dict:
    """Provide a Gmail API message (format=full) with HTML, text and an inline image."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD", "STARRED", "Label_1"],
        "snippet": "Weekly Newsletter &amp; Python Tips",
        "internalDate": "1735722000000",
        "payload": {
            "mimeType": "multipart/mixed",
            "headers": [
                {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                {"name": "From", "value": "Python Weekly <newsletter@python.org>"},
                {"name": "To", "value": "User <user@example.com>, other@example.com"},
                {"name": "Cc", "value": "cc@example.com"},
                {"name": "Date", "value": "Wed, 01 Jan 2025 09:00:00 +0000"},
            ],
            "body": {"size": 0},
            "parts": [
                {
                    "partId": "0",
                    "mimeType": "multipart/alternative",
                    "filename": "",
                    "body": {"size": 0},
                    "parts": [
                        {
                            "partId": "0.0",
                            "mimeType": "text/plain",
                            "filename": "",
                            "body": {"size": 20, "data": _b64("Plain text version")},
                        },
                        {
                            "partId": "0.1",
                            "mimeType": "text/html",
                            "filename": "",
                            "body": {
                                "size": 60,
                                "data": _b64('<p>Welcome!</p><img src="cid:logo123">'),
                            },
                        },
                    ],
                },
                {
                    "partId": "1",
                    "mimeType": "image/png",
                    "filename": "logo.png",
                    "headers": [{"name": "Content-ID", "value": "<logo123>"}],
                    "body": {"size": 2048, "attachmentId": "att-logo"},
                },
                {
                    "partId": "2",
                    "mimeType": "application/pdf",
                    "filename": "report.pdf",
                    "headers": [],
                    "body": {"size": 40960, "attachmentId": "att-report"},
                },
            ],
        },
    }
