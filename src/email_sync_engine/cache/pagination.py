"""Continuation token bookkeeping for "load more" requests."""

from __future__ import annotations

import structlog

from email_sync_engine.exceptions import StaleCursorError

logger = structlog.get_logger()


class CursorTracker:
    """Tracks the page tokens the provider issued per query under one profile.

    Tokens are opaque and must be echoed back verbatim. Everything is dropped
    on `reset`, so a token handed out under one profile can never be replayed
    under another.
    """

    def __init__(self, profile_id: str | None = None) -> None:
        self._profile_id = profile_id
        self._issued: dict[str, set[str]] = {}
        self._current: dict[str, str | None] = {}

    @property
    def profile_id(self) -> str | None:
        return self._profile_id

    @staticmethod
    def should_use_cache(is_paginated: bool, force_refresh: bool) -> bool:
        """Only fresh first-page requests may be answered from the cache."""
        return not is_paginated and not force_refresh

    def record(self, query: str, token: str | None) -> None:
        """Remember the next-page token returned for `query`."""

        self._current[query] = token
        if token:
            self._issued.setdefault(query, set()).add(token)

    def current(self, query: str) -> str | None:
        return self._current.get(query)

    def is_known(self, query: str, token: str) -> bool:
        return token in self._issued.get(query, set())

    def ensure_known(self, query: str, token: str) -> None:
        """Raise `StaleCursorError` unless `token` was issued for `query` under this profile."""

        if not self.is_known(query, token):
            logger.error(
                "stale_cursor_rejected",
                query=query,
                profile_id=self._profile_id,
            )
            raise StaleCursorError(
                f"Page token for query {query!r} was not issued under profile {self._profile_id!r}"
            )

    def reset(self, profile_id: str | None) -> None:
        self._issued.clear()
        self._current.clear()
        self._profile_id = profile_id
        logger.debug("cursor_tracker_reset", profile_id=profile_id)
