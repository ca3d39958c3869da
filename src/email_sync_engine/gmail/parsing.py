"""Helpers for parsing Gmail API messages into internal models."""

from __future__ import annotations

import base64
import binascii
import html
from datetime import datetime, timezone
from email.utils import getaddresses, parsedate_to_datetime
from typing import Any

from email_sync_engine.models import Address, Attachment, LabelInfo, ListPage, Message


def _header_map(headers: list[dict[str, Any]] | None) -> dict[str, str]:
    result: dict[str, str] = {}
    for h in headers or []:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first.
            result.setdefault(name.lower(), value)
    return result


def _parse_addresses(value: str | None) -> list[Address]:
    if not value:
        return []
    return [Address(name=name or addr, email=addr) for name, addr in getaddresses([value]) if addr]


def _parse_date(internal_date: Any, header_value: str | None) -> datetime:
    try:
        if internal_date is not None:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        pass

    if header_value:
        try:
            parsed = parsedate_to_datetime(header_value)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except (TypeError, ValueError, OverflowError):
            pass

    return datetime.fromtimestamp(0, tz=timezone.utc)


def decode_body_data(data: str | None) -> str:
    """Decode a base64url `body.data` value to text."""

    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def plain_text_to_html(text: str) -> str:
    return html.escape(text).replace("\r\n", "\n").replace("\n", "<br>")


def _walk_parts(part: dict[str, Any]):
    yield part
    for child in part.get("parts") or []:
        yield from _walk_parts(child)


def _strip_angle_brackets(value: str | None) -> str | None:
    if not value:
        return None
    return value.strip().strip("<>") or None


def extract_body(payload: dict[str, Any]) -> str:
    """Return the HTML body, or the plain-text body converted to `<br>` markup."""

    html_body = ""
    text_body = ""
    for part in _walk_parts(payload):
        if part.get("filename"):
            continue
        mime_type = (part.get("mimeType") or "").lower()
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        if mime_type == "text/html" and not html_body:
            html_body = decode_body_data(data)
        elif mime_type == "text/plain" and not text_body:
            text_body = decode_body_data(data)

    if html_body:
        return html_body
    return plain_text_to_html(text_body)


def extract_attachments(payload: dict[str, Any], message_id: str) -> list[Attachment]:
    attachments: list[Attachment] = []
    for part in _walk_parts(payload):
        body = part.get("body") or {}
        attachment_id = body.get("attachmentId")
        filename = part.get("filename") or ""
        headers = _header_map(part.get("headers"))
        if not filename and not (attachment_id and headers.get("content-id")):
            continue

        attachments.append(
            Attachment(
                name=filename,
                mime_type=part.get("mimeType") or "application/octet-stream",
                size=int(body.get("size") or 0),
                attachment_id=attachment_id,
                part_id=part.get("partId"),
                content_id=_strip_angle_brackets(headers.get("content-id")),
                message_id=message_id,
            )
        )
    return attachments


def parse_message(message: dict[str, Any]) -> Message:
    """Convert a Gmail API message (format=full) to `Message`.

    Args:
        message: Gmail API message dict.

    Returns:
        Message: Parsed message with decoded body and attachment metadata.
    """

    payload = message.get("payload") or {}
    hm = _header_map(payload.get("headers"))
    message_id = str(message.get("id") or "")

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []
    label_ids = [str(x) for x in label_ids if isinstance(x, str)]

    senders = _parse_addresses(hm.get("from"))

    return Message(
        id=message_id,
        thread_id=str(message.get("threadId") or message_id),
        sender=senders[0] if senders else Address(),
        to=_parse_addresses(hm.get("to")),
        cc=_parse_addresses(hm.get("cc")),
        subject=hm.get("subject") or "",
        body=extract_body(payload),
        date=_parse_date(message.get("internalDate"), hm.get("date")),
        is_read="UNREAD" not in label_ids,
        is_important="IMPORTANT" in label_ids,
        is_starred="STARRED" in label_ids,
        label_ids=label_ids,
        attachments=extract_attachments(payload, message_id),
        snippet=html.unescape(message.get("snippet") or ""),
    )


def parse_label(label: dict[str, Any]) -> LabelInfo:
    return LabelInfo(
        id=str(label.get("id") or ""),
        name=str(label.get("name") or ""),
        type=label.get("type"),
    )


def parse_list_page(response: dict[str, Any], messages: list[Message]) -> ListPage:
    return ListPage(
        messages=messages,
        next_page_token=response.get("nextPageToken"),
        result_size_estimate=int(response.get("resultSizeEstimate") or 0),
    )
