"""Thread-wide attachment listing."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from email_sync_engine.models import Attachment


def is_relevant(
    attachment: Attachment,
    min_size: int = 500,
    ignore_patterns: Sequence[str] = (),
) -> bool:
    """False for tiny parts and decoration such as logos, icons and signatures."""

    if attachment.size < min_size:
        return False
    name = attachment.name.lower()
    return not any(pattern.lower() in name for pattern in ignore_patterns)


def dedupe(attachments: Iterable[Attachment]) -> list[Attachment]:
    """Keep the first attachment per (name, size, mime_type)."""

    seen: set[tuple[str, int, str]] = set()
    unique: list[Attachment] = []
    for attachment in attachments:
        key = (attachment.name, attachment.size, attachment.mime_type)
        if key in seen:
            continue
        seen.add(key)
        unique.append(attachment)
    return unique
