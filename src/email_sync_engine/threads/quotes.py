"""Quoted-history removal for reply bodies.

Bodies up to `dom_max_length` characters are parsed with BeautifulSoup and
quote containers are removed from the tree; larger bodies go through a
cheaper regex pass. Both paths then drop localized reply headers, "wrote:"
attributions and "Original Message" blocks unless the message is a forward.

Stripping is idempotent: a body with nothing left to remove is returned
unchanged, and a result shorter than `min_length` falls back to the input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog
from bs4 import BeautifulSoup

from email_sync_engine.threads import locales

logger = structlog.get_logger()

QUOTE_SELECTORS = (
    ".gmail_quote",
    'blockquote[type="cite"]',
    ".gmail_extra",
    ".yahoo_quoted",
    ".moz-cite-prefix",
    "blockquote",
    '[class*="quote"]',
)

OUTLOOK_DIVIDER_COLORS = ("#e1e1e1", "#cccccc")

_GMAIL_QUOTE_RE = re.compile(r'<div[^>]*class="gmail_quote[^"]*"[\s\S]*?</div>', re.IGNORECASE)
_BLOCKQUOTE_RE = re.compile(r"<blockquote[\s\S]*?</blockquote>", re.IGNORECASE)
_QUOTE_CLASS_RE = re.compile(r'<div[^>]*class="[^"]*quote[^"]*"[\s\S]*?</div>', re.IGNORECASE)
_DOCUMENT_RE = re.compile(r"^\s*(?:<!doctype[^>]*>\s*)?<html", re.IGNORECASE)


def parse_fragment(html: str, parser: str = "lxml") -> BeautifulSoup:
    return BeautifulSoup(html, parser)


def serialize_fragment(soup: BeautifulSoup, source: str) -> str:
    """Serialize `soup` back to markup of the same shape as `source`.

    Full documents keep their <html>/<head> wrapper. For fragments the
    wrapper the parser adds is dropped, but anything it hoisted into <head>
    (leading <style>, <meta> or <title> elements) is kept in front of the
    body content.
    """

    if _DOCUMENT_RE.match(source) or soup.html is None:
        return str(soup)
    return "".join(
        element.decode_contents() for element in (soup.head, soup.body) if element is not None
    )


@dataclass(frozen=True)
class StrippedBody:
    """A reply body split into its new content and the quoted history removed from it."""

    body: str
    quoted: str | None = None


class QuoteStripper:
    """Removes quoted reply history from message bodies."""

    def __init__(
        self,
        dom_max_length: int = 50_000,
        min_length: int = 20,
        parser: str = "lxml",
    ) -> None:
        self.dom_max_length = dom_max_length
        self.min_length = min_length
        self.parser = parser
        self._header_re = locales.header_line_pattern()
        self._wrote_re = locales.wrote_pattern()
        self._forward_re = locales.forward_pattern()
        self._original_re = locales.original_message_pattern()

    def is_forward(self, html: str) -> bool:
        return bool(self._forward_re.search(html))

    def strip(self, html: str) -> str:
        return self.split(html).body

    def split(self, html: str) -> StrippedBody:
        """Separate `html` into the reply and the quoted fragments removed from it.

        `quoted` holds the removed fragments joined by newlines, or None when
        nothing was removed or the stripped body fell back to the input.
        """

        if not html or not html.strip():
            return StrippedBody(html)

        if len(html) > self.dom_max_length:
            cleaned, quoted = self._strip_with_regex(html)
            path = "regex"
        else:
            cleaned, quoted = self._strip_with_dom(html)
            path = "dom"

        if not quoted:
            return StrippedBody(html)

        cleaned = cleaned.strip()
        if len(cleaned) < self.min_length:
            logger.debug("quote_strip_fallback", path=path, length=len(cleaned))
            return StrippedBody(html)

        logger.debug("quote_stripped", path=path, before=len(html), after=len(cleaned))
        return StrippedBody(cleaned, "\n".join(quoted).strip() or None)

    def _strip_with_dom(self, html: str) -> tuple[str, list[str]]:
        soup = parse_fragment(html, self.parser)
        quoted: list[str] = []

        for selector in QUOTE_SELECTORS:
            for element in soup.select(selector):
                if element.decomposed or self.is_forward(element.get_text()):
                    continue
                quoted.append(str(element))
                element.decompose()

        for element in soup.select('div[style*="border-top"]'):
            if element.decomposed:
                continue
            style = element.get("style", "")
            if isinstance(style, list):
                style = " ".join(style)
            if any(color in style.lower() for color in OUTLOOK_DIVIDER_COLORS):
                quoted.append(str(element))
                element.decompose()

        cleaned = serialize_fragment(soup, html)
        cleaned = self._strip_reply_text(cleaned, quoted)
        return cleaned, quoted

    def _strip_with_regex(self, html: str) -> tuple[str, list[str]]:
        quoted: list[str] = []

        def drop_unless_forward(match: re.Match[str]) -> str:
            text = match.group(0)
            if self.is_forward(text):
                return text
            quoted.append(text)
            return ""

        cleaned = html
        for pattern in (_GMAIL_QUOTE_RE, _BLOCKQUOTE_RE, _QUOTE_CLASS_RE):
            cleaned = pattern.sub(drop_unless_forward, cleaned)

        cleaned = self._strip_reply_text(cleaned, quoted)
        return cleaned, quoted

    def _strip_reply_text(self, html: str, quoted: list[str]) -> str:
        if self.is_forward(html):
            return html

        for pattern in (self._header_re, self._wrote_re, self._original_re):
            matches = [m.group(0) for m in pattern.finditer(html) if m.group(0)]
            if matches:
                quoted.extend(matches)
                html = pattern.sub("", html)
        return html
