"""Localized reply boilerplate recognised by the quote stripper.

Adding a locale means adding entries here; the stripper builds its patterns
from these tables.
"""

from __future__ import annotations

import re

# Header field names that start a quoted reply header block.
HEADER_KEYWORDS: dict[str, tuple[str, ...]] = {
    "en": ("From", "Sent", "To", "Subject", "Cc", "Date"),
    "es": ("De", "Enviado", "Enviada", "Para", "Asunto", "Fecha", "CC"),
    "pt": ("De", "Enviada", "Enviado", "Para", "Assunto", "Data", "Cc"),
    "de": ("Von", "Gesendet", "An", "Betreff", "Datum", "Cc"),
    "fr": ("De", "Envoyé", "À", "A", "Objet", "Date", "Cc"),
    "it": ("Da", "Inviato", "A", "Oggetto", "Data", "Cc"),
}

# "On <date>, <person> wrote:" attribution lines, as regex fragments.
WROTE_PATTERNS: dict[str, str] = {
    "en": r"On\s[^<]*?wrote\s*:",
    "es": r"El\s[^<]*?escribi[óo]\s*:",
    "pt": r"Em\s[^<]*?escreveu\s*:",
    "de": r"Am\s[^<]*?schrieb[^<:]*:",
    "fr": r"Le\s[^<]*?a\s+[ée]crit\s*:",
    "it": r"Il\s[^<]*?ha\s+scritto\s*:",
}

# Markers of a forwarded message. Forwarded headers are intentional context.
FORWARD_MARKERS: tuple[str, ...] = (
    "Forwarded message",
    "Mensaje reenviado",
    "Mensagem encaminhada",
    "Weitergeleitete Nachricht",
    "Message transféré",
    "Messaggio inoltrato",
)

ORIGINAL_MESSAGE_MARKERS: tuple[str, ...] = (
    "-----Original Message-----",
    "-----Mensaje original-----",
    "-----Mensagem original-----",
    "-----Ursprüngliche Nachricht-----",
    "-----Message d'origine-----",
    "-----Messaggio originale-----",
)


def header_keywords() -> list[str]:
    """All header keywords, longest first so alternation prefers "Enviada" over "De"."""

    keywords = {kw for words in HEADER_KEYWORDS.values() for kw in words}
    return sorted(keywords, key=lambda kw: (-len(kw), kw))


def header_line_pattern() -> re.Pattern[str]:
    """A header line: keyword and colon at a line or tag boundary, up to the line break."""

    alternation = "|".join(re.escape(kw) for kw in header_keywords())
    return re.compile(
        r"(?:^|(?<=>))[ \t]*(?:<(?:b|strong)>)?[ \t]*(?:" + alternation + r")[ \t]*:"
        r"[ \t]*(?:</(?:b|strong)>)?[^<\n]*(?:<br\s*/?>|\n)",
        re.IGNORECASE | re.MULTILINE,
    )


def wrote_pattern() -> re.Pattern[str]:
    alternation = "|".join(f"(?:{p})" for p in WROTE_PATTERNS.values())
    return re.compile(r"\b(?:" + alternation + r")\s*(?:<br\s*/?>)?", re.IGNORECASE)


def forward_pattern() -> re.Pattern[str]:
    return re.compile("|".join(re.escape(m) for m in FORWARD_MARKERS), re.IGNORECASE)


def original_message_pattern() -> re.Pattern[str]:
    """An "Original Message" separator and everything up to the next block element."""

    alternation = "|".join(re.escape(m) for m in ORIGINAL_MESSAGE_MARKERS)
    return re.compile(r"(?:" + alternation + r")[\s\S]*?(?=<div|<p|$)", re.IGNORECASE)
