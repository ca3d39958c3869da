"""Mail provider contract consumed by the engine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from email_sync_engine.models import LabelInfo, ListPage, Message, OutgoingAttachment, SendResult


class MailProvider(Protocol):
    async def list_messages(
        self,
        query: str,
        max_results: int | None = None,
        page_token: str | None = None,
        *,
        format: str = "full",
    ) -> ListPage: ...

    async def get_message(self, message_id: str) -> Message: ...

    async def get_thread(self, thread_id: str) -> list[Message]: ...

    async def send_message(
        self,
        to: str,
        cc: str,
        subject: str,
        body_html: str,
        attachments: Sequence[OutgoingAttachment] = (),
        thread_id: str | None = None,
    ) -> SendResult: ...

    async def mutate_labels(
        self, message_id: str, add: Sequence[str] = (), remove: Sequence[str] = ()
    ) -> None: ...

    async def set_read_state(self, message_id: str, read: bool) -> None: ...

    async def set_starred(self, message_id: str, starred: bool) -> None: ...

    async def trash(self, message_id: str) -> None: ...

    async def list_labels(self) -> list[LabelInfo]: ...

    async def get_attachment(self, message_id: str, attachment_id: str) -> bytes: ...
