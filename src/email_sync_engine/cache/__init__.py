"""Tiered message cache.

A memory tier and a SQLite-backed persistent tier are composed into one cache
keyed by (kind, query-or-id, profile), with TTL and profile-scoped validity.
"""

from .composite import KIND_LIST, KIND_MESSAGE, KIND_THREAD, CompositeCache
from .pagination import CursorTracker
from .tiers import CacheTier, MemoryTier, PersistentTier

__all__ = [
    "KIND_LIST",
    "KIND_MESSAGE",
    "KIND_THREAD",
    "CacheTier",
    "CompositeCache",
    "CursorTracker",
    "MemoryTier",
    "PersistentTier",
]
