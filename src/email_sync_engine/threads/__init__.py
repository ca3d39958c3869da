"""Thread reconstruction: quote stripping, sanitization and attachment listing."""

from .attachments import dedupe, is_relevant
from .inline_images import find_attachment_for_cid, resolve_inline_images
from .pipeline import ThreadReconstructor
from .quotes import QuoteStripper, StrippedBody
from .sanitize import extract_preview, sanitize_html

__all__ = [
    "QuoteStripper",
    "StrippedBody",
    "ThreadReconstructor",
    "dedupe",
    "extract_preview",
    "find_attachment_for_cid",
    "is_relevant",
    "resolve_inline_images",
    "sanitize_html",
]
