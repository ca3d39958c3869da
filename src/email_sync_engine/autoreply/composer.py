"""Auto-reply copy for one, two or many absent profiles."""

from __future__ import annotations

from html import escape

from email_sync_engine.profiles import Profile

_WRAPPER = (
    '<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
    "{paragraphs}"
    "</div>"
)

SINGLE_BODY = "I'm out of office currently. I'll get back to you when I return."
PAIR_BODY = (
    "We are both out of office currently. Your message has been received "
    "and we will respond when we return."
)
TEAM_BODY = (
    "Our team is currently out of office. Your message has been received "
    "and we will respond when we return."
)
CLOSING = "Thank you for your understanding."


def _render(body: str, signature: str, spacer: bool) -> str:
    paragraphs = [
        "<p>Hi,</p>",
        f"<p>{body}</p>",
        f"<p>{CLOSING}</p>",
    ]
    if spacer:
        paragraphs.append("<br>")
    paragraphs.append(f"<p>{escape(signature)}</p>")
    return _WRAPPER.format(paragraphs="".join(paragraphs))


def describe_absent(names: list[str]) -> str:
    """Human-readable list of names for log lines ("A", "A and B", "A, B and C")."""

    if len(names) <= 1:
        return "".join(names)
    if len(names) == 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


class ReplyComposer:
    """Builds the auto-reply subject and HTML body."""

    def subject(self, original_subject: str) -> str:
        return f"Re: {original_subject}"

    def body(self, profiles: list[Profile]) -> str:
        if not profiles:
            raise ValueError("At least one out-of-office profile is required")

        names = [p.name for p in profiles]
        if len(profiles) == 1:
            custom = profiles[0].auto_reply_message
            if custom and custom.strip():
                return custom.strip()
            return _render(SINGLE_BODY, names[0], spacer=False)
        if len(profiles) == 2:
            return _render(PAIR_BODY, " & ".join(names), spacer=True)
        return _render(TEAM_BODY, ", ".join(names), spacer=True)
