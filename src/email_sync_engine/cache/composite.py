"""Two-tier cache keyed by (kind, query-or-id, profile).

The memory tier answers first; on a miss the persistent tier is consulted and a
valid entry is promoted back into memory. An entry is valid only while it is
younger than the TTL and belongs to the active profile.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog

from email_sync_engine.cache.tiers import CacheTier
from email_sync_engine.models import CacheEntry
from email_sync_engine.utils import now_ms

logger = structlog.get_logger()

KIND_LIST = "list"
KIND_MESSAGE = "message"
KIND_THREAD = "thread"


class CompositeCache:
    """Combines a memory tier and an optional persistent tier."""

    def __init__(
        self,
        memory: CacheTier,
        persistent: CacheTier | None = None,
        *,
        prefix: str,
        ttl_ms: int,
        clock: Callable[[], int] = now_ms,
        active_profile_id: str | None = None,
        decoders: Mapping[str, Callable[[Any], Any]] | None = None,
    ) -> None:
        """Create a cache.

        Args:
            memory: In-process tier.
            persistent: Durable tier, or None for a memory-only cache.
            prefix: Cache family prefix used in every storage key.
            ttl_ms: Entry lifetime in milliseconds.
            clock: Returns the current time in epoch milliseconds.
            active_profile_id: Profile entries are written and validated for.
            decoders: Per-kind callables turning a JSON-decoded payload back
                into its model when an entry is promoted from the persistent tier.
        """

        self._memory = memory
        self._persistent = persistent
        self._prefix = prefix
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._active_profile_id = active_profile_id
        self._decoders = dict(decoders or {})
        self._generation = 0

    @property
    def active_profile_id(self) -> str | None:
        return self._active_profile_id

    @property
    def generation(self) -> int:
        """Incremented whenever the whole cache is invalidated.

        Fetches capture it before awaiting the provider and compare afterwards
        to detect that their result belongs to a previous profile.
        """
        return self._generation

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def storage_key(self, kind: str, key: str, profile_id: str | None = None) -> str:
        profile = profile_id if profile_id is not None else self._active_profile_id
        return f"{self._prefix}:{kind}:{key}:{profile or 'none'}"

    def is_valid(self, entry: CacheEntry) -> bool:
        is_time_valid = self._clock() - entry.timestamp < self._ttl_ms
        is_profile_valid = (
            self._active_profile_id is None or entry.profile_id == self._active_profile_id
        )
        return is_time_valid and is_profile_valid

    def get(self, kind: str, key: str) -> CacheEntry | None:
        """Return a valid entry or None, promoting persistent hits into memory."""

        storage_key = self.storage_key(kind, key)

        entry = self._memory.get(storage_key)
        if entry is not None and self.is_valid(entry):
            logger.debug("cache_hit", tier="memory", kind=kind, key=key)
            return entry

        if self._persistent is not None:
            stored = self._persistent.get(storage_key)
            if stored is not None and self.is_valid(stored):
                stored = self._decode(kind, stored)
                self._memory.set(storage_key, stored)
                logger.debug("cache_hit", tier="persistent", kind=kind, key=key)
                return stored

        logger.debug("cache_miss", kind=kind, key=key)
        return None

    def peek(self, kind: str, key: str) -> CacheEntry | None:
        """Return the stored entry regardless of validity."""

        storage_key = self.storage_key(kind, key)
        entry = self._memory.get(storage_key)
        if entry is None and self._persistent is not None:
            entry = self._persistent.get(storage_key)
            if entry is not None:
                entry = self._decode(kind, entry)
        return entry

    def set(
        self,
        kind: str,
        key: str,
        payload: Any,
        continuation_token: str | None = None,
    ) -> CacheEntry:
        """Write a fresh entry to both tiers."""

        entry = CacheEntry(
            payload=payload,
            timestamp=self._clock(),
            profile_id=self._active_profile_id,
            key=key,
            continuation_token=continuation_token,
        )
        self.put(kind, entry)
        return entry

    def put(self, kind: str, entry: CacheEntry) -> None:
        """Write an existing entry back to both tiers, keeping its timestamp."""

        storage_key = self.storage_key(kind, entry.key, entry.profile_id)
        self._memory.set(storage_key, entry)
        if self._persistent is not None:
            self._persistent.set(storage_key, entry)

    def entries(self, kind: str) -> list[CacheEntry]:
        """Valid in-memory entries of `kind` for the active profile."""

        prefix = f"{self._prefix}:{kind}:"
        result: list[CacheEntry] = []
        for storage_key in self._memory.keys(prefix):
            entry = self._memory.get(storage_key)
            if entry is not None and self.is_valid(entry):
                result.append(entry)
        return result

    def delete(self, kind: str, key: str) -> None:
        storage_key = self.storage_key(kind, key)
        self._memory.delete(storage_key)
        if self._persistent is not None:
            self._persistent.delete(storage_key)

    def mark_stale(self, kind: str, key: str | None = None) -> int:
        """Zero the timestamp of one entry (or every entry of `kind`).

        The entry stays stored so its continuation token remains readable via
        `peek`, but the next `get` treats it as expired.
        """

        if key is not None:
            storage_keys = [self.storage_key(kind, key)]
        else:
            prefix = f"{self._prefix}:{kind}:"
            storage_keys = list(dict.fromkeys(self._memory.keys(prefix)))
            if self._persistent is not None:
                for storage_key in self._persistent.keys(prefix):
                    if storage_key not in storage_keys:
                        storage_keys.append(storage_key)

        marked = 0
        for storage_key in storage_keys:
            entry = self._memory.get(storage_key)
            if entry is not None:
                entry.timestamp = 0
                marked += 1
            if self._persistent is not None:
                stored = self._persistent.get(storage_key)
                if stored is not None:
                    self._persistent.set(storage_key, stored.model_copy(update={"timestamp": 0}))
                    if entry is None:
                        marked += 1

        logger.debug("cache_marked_stale", kind=kind, key=key, marked=marked)
        return marked

    def invalidate_all(self) -> None:
        """Drop every entry of this cache family from both tiers."""

        self._memory.clear(f"{self._prefix}:")
        if self._persistent is not None:
            self._persistent.clear(f"{self._prefix}:")
        self._generation += 1
        logger.info("cache_invalidated", generation=self._generation)

    def invalidate_for_profile_switch(self, new_profile_id: str | None) -> bool:
        """Clear everything when the active profile changes.

        Returns:
            True if the profile actually changed.
        """

        if new_profile_id == self._active_profile_id:
            return False

        logger.info(
            "cache_profile_switch",
            previous_profile=self._active_profile_id,
            new_profile=new_profile_id,
        )
        self.invalidate_all()
        self._active_profile_id = new_profile_id
        return True

    def _decode(self, kind: str, entry: CacheEntry) -> CacheEntry:
        decoder = self._decoders.get(kind)
        if decoder is None:
            return entry
        return entry.model_copy(update={"payload": decoder(entry.payload)})
