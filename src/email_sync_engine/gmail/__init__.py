"""Gmail provider: API client and message parsing."""

from .client import GmailClient, is_transient_error
from .parsing import parse_message
from .provider import MailProvider

__all__ = ["GmailClient", "MailProvider", "is_transient_error", "parse_message"]
