"""Conversation view reconstruction."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from email_sync_engine.config import Settings, get_settings
from email_sync_engine.models import Attachment, ConversationView, Message
from email_sync_engine.threads.attachments import dedupe, is_relevant
from email_sync_engine.threads.inline_images import resolve_inline_images
from email_sync_engine.threads.quotes import QuoteStripper
from email_sync_engine.threads.sanitize import extract_preview, sanitize_html

logger = structlog.get_logger()


class ThreadReconstructor:
    """Turns the raw messages of one thread into a `ConversationView`.

    Messages are ordered newest first. Each body is quote-stripped,
    sanitized and has its inline images resolved; a failure on one message
    keeps that message's original body and does not affect the others.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        quote_stripper: QuoteStripper | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.quote_stripper = quote_stripper or QuoteStripper(
            dom_max_length=self.settings.quote_dom_max_length,
            min_length=self.settings.quote_min_length,
            parser=self.settings.html_parser,
        )

    def build(self, messages: Iterable[Message], thread_id: str | None = None) -> ConversationView:
        ordered = sorted(messages, key=lambda m: m.timestamp_ms, reverse=True)
        if thread_id is None:
            thread_id = ordered[0].thread_id if ordered else ""

        cleaned = [self.clean_message(m) for m in ordered]
        attachments = self.collect_attachments(ordered)

        logger.debug(
            "thread_reconstructed",
            thread_id=thread_id,
            messages=len(cleaned),
            attachments=len(attachments),
        )
        return ConversationView(thread_id=thread_id, messages=cleaned, attachments=attachments)

    def clean_message(self, message: Message) -> Message:
        settings = self.settings
        try:
            stripped = self.quote_stripper.split(message.body)
            body = sanitize_html(stripped.body, parser=settings.html_parser)
            body = resolve_inline_images(
                body,
                message.id,
                self._owned_attachments(message),
                url_template=settings.inline_image_url_template,
            )
            preview = extract_preview(
                body, max_length=settings.preview_max_length, parser=settings.html_parser
            )
        except Exception as e:
            logger.warning("thread_message_clean_failed", message_id=message.id, error=str(e))
            return message.model_copy(update={"preview": message.preview or message.snippet})

        return message.model_copy(
            update={"body": body, "preview": preview, "quoted_content": stripped.quoted}
        )

    def collect_attachments(self, messages: Iterable[Message]) -> list[Attachment]:
        relevant = (
            attachment
            for message in messages
            for attachment in self._owned_attachments(message)
            if is_relevant(
                attachment,
                min_size=self.settings.attachment_min_size,
                ignore_patterns=self.settings.attachment_ignore_patterns,
            )
        )
        return dedupe(relevant)

    @staticmethod
    def _owned_attachments(message: Message) -> list[Attachment]:
        return [
            a if a.message_id else a.model_copy(update={"message_id": message.id})
            for a in message.attachments
        ]
