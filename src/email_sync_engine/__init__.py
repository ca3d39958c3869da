"""Email Sync Engine - cached Gmail sync with thread reconstruction.

This package provides a two-tier message cache with profile-scoped
invalidation, at-most-once out-of-office auto-replies, a counted label
tree and a conversation view pipeline on top of the Gmail API.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from email_sync_engine.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
