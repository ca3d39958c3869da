"""Resolution of `cid:` inline image references."""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from email_sync_engine.models import Attachment

logger = structlog.get_logger()

_CID_SRC_RE = re.compile(r"""(src\s*=\s*)(["'])cid:([^"']+)\2""", re.IGNORECASE)


def find_attachment_for_cid(cid: str, attachments: Sequence[Attachment]) -> Attachment | None:
    """Exact Content-ID or attachment id match first, then file name containment."""

    for attachment in attachments:
        if cid in (attachment.content_id, attachment.attachment_id):
            return attachment

    for attachment in attachments:
        name = attachment.name
        if name and (name in cid or cid in name):
            return attachment

    return None


def resolve_inline_images(
    html: str,
    message_id: str,
    attachments: Sequence[Attachment],
    url_template: str = "attachment://{message_id}/{attachment_id}",
) -> str:
    """Replace resolvable `cid:` image sources with attachment URLs.

    References without a matching attachment are left untouched.
    """

    if not html or "cid:" not in html.lower():
        return html

    def replace(match: re.Match[str]) -> str:
        prefix, quote, cid = match.group(1), match.group(2), match.group(3)
        attachment = find_attachment_for_cid(cid, attachments)
        if attachment is None or not attachment.attachment_id:
            logger.debug("inline_image_unresolved", message_id=message_id, cid=cid)
            return match.group(0)
        url = url_template.format(
            message_id=attachment.message_id or message_id,
            attachment_id=attachment.attachment_id,
        )
        return f"{prefix}{quote}{url}{quote}"

    return _CID_SRC_RE.sub(replace, html)
