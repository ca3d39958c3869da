"""Out-of-office auto-reply dispatch."""

from .composer import ReplyComposer, describe_absent
from .guard import AutoReplyGuard, OutOfOfficeSource, ReplySender

__all__ = [
    "AutoReplyGuard",
    "OutOfOfficeSource",
    "ReplyComposer",
    "ReplySender",
    "describe_absent",
]
