"""Durable local storage.

`SqliteKeyValueStore` backs the persistent cache tier; the attachment
reference registry hands out short-lived files for downloaded attachments.
"""

from .attachment_refs import AttachmentReference, AttachmentReferenceRegistry
from .kv_store import SqliteKeyValueStore

__all__ = ["AttachmentReference", "AttachmentReferenceRegistry", "SqliteKeyValueStore"]
