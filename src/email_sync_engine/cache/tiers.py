"""Cache tiers.

Both tiers store `CacheEntry` objects under fully qualified storage keys
(`{prefix}:{kind}:{query-or-id}:{profileId}`). Validity is decided by the
composite cache, not by the tiers, with one exception: the persistent tier
needs the TTL to evict expired entries when the store runs out of space.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from typing import Protocol

import structlog
from pydantic import ValidationError as PydanticValidationError

from email_sync_engine.exceptions import StorageQuotaError
from email_sync_engine.models import CacheEntry
from email_sync_engine.storage.kv_store import SqliteKeyValueStore
from email_sync_engine.utils import now_ms

logger = structlog.get_logger()


class CacheTier(Protocol):
    """Storage interface shared by the memory and persistent tiers."""

    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...

    def clear(self, prefix: str = "") -> None: ...


class MemoryTier:
    """In-process dictionary tier. Holds live payload objects."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._entries if k.startswith(prefix)]

    def clear(self, prefix: str = "") -> None:
        for key in self.keys(prefix):
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class PersistentTier:
    """Durable tier over a key/value store holding JSON-encoded entries.

    Reads and writes are best effort. A store that raises reads as empty and
    drops writes. When the store reports it is out of space, every expired
    entry under `prefix` is evicted and the write is retried once; if that
    also fails the write is dropped and the memory tier stays authoritative
    for the session.
    """

    def __init__(
        self,
        store: SqliteKeyValueStore,
        prefix: str,
        ttl_ms: int,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._ttl_ms = ttl_ms
        self._clock = clock

    def get(self, key: str) -> CacheEntry | None:
        try:
            raw = self._store.get(key)
        except sqlite3.Error as exc:
            logger.warning("persistent_cache_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except PydanticValidationError as exc:
            logger.warning("persistent_cache_entry_corrupt", key=key, error=str(exc))
            self.delete(key)
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        value = entry.model_dump_json()
        try:
            self._store.set(key, value)
            return
        except StorageQuotaError as exc:
            logger.warning("persistent_cache_quota_exceeded", key=key, error=str(exc))
        except sqlite3.Error as exc:
            logger.warning("persistent_cache_write_failed", key=key, error=str(exc))
            return

        evicted = self.evict_expired()
        try:
            self._store.set(key, value)
        except (StorageQuotaError, sqlite3.Error) as exc:
            logger.warning(
                "persistent_cache_write_dropped", key=key, evicted=evicted, error=str(exc)
            )

    def delete(self, key: str) -> None:
        try:
            self._store.delete(key)
        except sqlite3.Error as exc:
            logger.warning("persistent_cache_delete_failed", key=key, error=str(exc))

    def keys(self, prefix: str = "") -> list[str]:
        try:
            return self._store.keys(prefix or self._prefix)
        except sqlite3.Error as exc:
            logger.warning(
                "persistent_cache_read_failed", prefix=prefix or self._prefix, error=str(exc)
            )
            return []

    def clear(self, prefix: str = "") -> None:
        try:
            removed = self._store.delete_prefix(prefix or self._prefix)
        except sqlite3.Error as exc:
            logger.warning(
                "persistent_cache_clear_failed", prefix=prefix or self._prefix, error=str(exc)
            )
            return
        logger.debug("persistent_cache_cleared", prefix=prefix or self._prefix, removed=removed)

    def evict_expired(self) -> int:
        """Delete every expired entry of this cache family and return the count."""

        now = self._clock()
        evicted = 0
        for key in self.keys():
            entry = self.get(key)
            if entry is None:
                evicted += 1
                continue
            if now - entry.timestamp >= self._ttl_ms:
                self.delete(key)
                evicted += 1
        logger.info("persistent_cache_expired_evicted", evicted=evicted)
        return evicted
