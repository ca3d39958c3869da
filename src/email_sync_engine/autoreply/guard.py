"""At-most-once auto-reply dispatch per sender.

The check against `processed`/`pending` and the claim into `pending` happen in
one synchronous step, so concurrent tasks on the same event loop can never both
claim the same sender. A sender only moves to `processed` after the reply was
sent; failures leave it unclaimed so a later fetch can retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from typing import Protocol

import structlog

from email_sync_engine.autoreply.composer import ReplyComposer, describe_absent
from email_sync_engine.models import Message, SendResult
from email_sync_engine.profiles import Profile

logger = structlog.get_logger()


class ReplySender(Protocol):
    async def send_message(
        self,
        to: str,
        cc: str,
        subject: str,
        body_html: str,
        attachments: Sequence[object] = (),
        thread_id: str | None = None,
    ) -> SendResult: ...


class OutOfOfficeSource(Protocol):
    async def out_of_office_profiles(self) -> list[Profile]: ...


class AutoReplyGuard:
    """Deduplicates auto-replies per normalized sender address."""

    def __init__(
        self,
        provider: ReplySender,
        out_of_office_source: OutOfOfficeSource,
        composer: ReplyComposer | None = None,
        internal_addresses: Iterable[str] = (),
        internal_markers: Iterable[str] = (),
        automated_indicators: Iterable[str] = (),
    ) -> None:
        self._provider = provider
        self._out_of_office_source = out_of_office_source
        self._composer = composer or ReplyComposer()
        self._internal_addresses = {a.strip().lower() for a in internal_addresses if a.strip()}
        self._internal_markers = [m.strip().lower() for m in internal_markers if m.strip()]
        self._automated_indicators = [i.lower() for i in automated_indicators if i]
        self.processed: set[str] = set()
        self.pending: set[str] = set()

    def is_internal(self, sender: str) -> bool:
        return sender in self._internal_addresses or any(
            marker in sender for marker in self._internal_markers
        )

    def is_automated(self, sender: str) -> bool:
        return any(indicator in sender for indicator in self._automated_indicators)

    def try_claim(self, sender: str) -> bool:
        """Check and claim `sender` without yielding to the event loop."""

        if not sender:
            return False
        if self.is_internal(sender) or self.is_automated(sender):
            return False
        if sender in self.processed or sender in self.pending:
            return False
        self.pending.add(sender)
        return True

    async def handle(self, message: Message) -> bool:
        """Send an auto-reply for `message` if its sender has not been answered yet.

        Returns:
            True if a reply was sent by this call.
        """

        sender = message.sender_email
        if not self.try_claim(sender):
            return False

        try:
            profiles = await self._out_of_office_source.out_of_office_profiles()
            if not profiles:
                return False

            absent = describe_absent([p.name for p in profiles])
            result = await self._provider.send_message(
                to=sender,
                cc="",
                subject=self._composer.subject(message.subject),
                body_html=self._composer.body(profiles),
                attachments=(),
                thread_id=message.thread_id,
            )
            if not result.success:
                logger.warning("auto_reply_not_sent", sender=sender, absent=absent)
                return False

            self.processed.add(sender)
            logger.info(
                "auto_reply_sent",
                sender=sender,
                absent=absent,
                thread_id=message.thread_id,
            )
            return True
        except Exception as e:
            logger.error("auto_reply_failed", sender=sender, error=str(e))
            return False
        finally:
            self.pending.discard(sender)

    async def process_batch(self, messages: Iterable[Message]) -> int:
        """Run the guard for every unread message concurrently.

        Messages are claimed newest first, so a sender with several unread
        messages gets a single reply threaded into the most recent one.

        Returns:
            Number of replies sent.
        """

        unread = [m for m in messages if not m.is_read]
        if not unread:
            return 0

        unread.sort(key=lambda m: m.timestamp_ms, reverse=True)
        results = await asyncio.gather(
            *(self.handle(m) for m in unread), return_exceptions=True
        )
        sent = sum(1 for r in results if r is True)
        logger.debug("auto_reply_batch_processed", unread=len(unread), sent=sent)
        return sent

    def reset(self) -> None:
        self.processed.clear()
        self.pending.clear()
        logger.info("auto_reply_state_cleared")
