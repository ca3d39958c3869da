"""Layout-breakout sanitization and plain-text previews.

This is not an HTML sanitizer. Bodies are rendered in an isolated document;
the only goal here is to keep a message from escaping its container.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from email_sync_engine.threads.quotes import parse_fragment, serialize_fragment

_POSITION_RE = re.compile(r"position\s*:\s*(?:fixed|absolute)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

PREVIEW_EXCLUDED = ".gmail_quote, blockquote, [class*=\"quote\"], script, style"
ELLIPSIS = "..."


def _is_stylesheet(link: Tag) -> bool:
    rel = link.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return any(value.lower() == "stylesheet" for value in rel)


def sanitize_html(html: str, parser: str = "lxml") -> str:
    """Drop scripts and external stylesheets, pin positioned elements in place."""

    if not html:
        return html

    soup = parse_fragment(html, parser)
    changed = False

    for script in soup.find_all("script"):
        script.decompose()
        changed = True

    for link in soup.find_all("link"):
        if _is_stylesheet(link):
            link.decompose()
            changed = True

    for element in soup.find_all(style=_POSITION_RE):
        element["style"] = _POSITION_RE.sub("position: relative", element["style"])
        changed = True

    if not changed:
        return html
    return serialize_fragment(soup, html)


def extract_preview(html: str, max_length: int = 120, parser: str = "lxml") -> str:
    """Plain-text excerpt without quoted content, at most `max_length` characters."""

    if not html:
        return ""

    soup: BeautifulSoup = parse_fragment(html, parser)
    for element in soup.select(PREVIEW_EXCLUDED):
        if not element.decomposed:
            element.decompose()

    text = _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)].rstrip() + ELLIPSIS
