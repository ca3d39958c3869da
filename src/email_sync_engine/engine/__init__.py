"""Engine facade exposed to UI collaborators."""

from .sync_engine import MailSyncEngine, build_cache

__all__ = ["MailSyncEngine", "build_cache"]
