"""SQLite-backed key/value store for durable cache entries.

Values are opaque strings (the cache stores JSON blobs). An optional byte quota
mirrors the storage limits of a browser-durable store: a write that would
exceed it raises `StorageQuotaError` so callers can evict and retry.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

from email_sync_engine.exceptions import StorageQuotaError

logger = structlog.get_logger()


_SCHEMA_VERSION = 1


class SqliteKeyValueStore:
    """Durable string key/value store."""

    def __init__(self, db_path: Path, max_bytes: int | None = None) -> None:
        """Create a store.

        Args:
            db_path: Path to the SQLite database file.
            max_bytes: Optional quota on the summed size of keys and values.
        """

        self._db_path = db_path
        self._max_bytes = max_bytes

    def initialize(self) -> None:
        """Create or verify the store schema."""

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

            current_version = self._get_schema_version(conn)
            if current_version is None:
                self._create_schema_v1(conn)
                self._set_schema_version(conn, _SCHEMA_VERSION)
                conn.commit()
                logger.info("kv_store_schema_created", version=_SCHEMA_VERSION)
                return

            if current_version != _SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {current_version}; expected {_SCHEMA_VERSION}"
                )

    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row["value"])

    def set(self, key: str, value: str) -> None:
        """Insert or replace a value.

        Raises:
            StorageQuotaError: If the write would exceed the quota or the disk is full.
        """

        size = len(key.encode("utf-8")) + len(value.encode("utf-8"))

        try:
            with self._connect() as conn:
                if self._max_bytes is not None:
                    (used,) = conn.execute(
                        "SELECT COALESCE(SUM(size_bytes), 0) FROM kv_entries WHERE key != ?",
                        (key,),
                    ).fetchone()
                    if int(used) + size > self._max_bytes:
                        raise StorageQuotaError(
                            f"Writing {size} bytes would exceed the {self._max_bytes} byte quota"
                        )

                conn.execute(
                    """
                    INSERT INTO kv_entries (key, value, size_bytes)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value=excluded.value,
                        size_bytes=excluded.size_bytes
                    """,
                    (key, value, size),
                )
                conn.commit()
        except sqlite3.OperationalError as exc:
            if "full" in str(exc).lower():
                raise StorageQuotaError(str(exc)) from exc
            raise

    def delete(self, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            conn.commit()
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with `prefix`, in key order."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_entries WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["key"] for row in rows]

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with `prefix` and return how many were removed."""

        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM kv_entries WHERE substr(key, 1, ?) = ?",
                (len(prefix), prefix),
            )
            conn.commit()
        return cursor.rowcount

    def total_bytes(self) -> int:
        with self._connect() as conn:
            (used,) = conn.execute("SELECT COALESCE(SUM(size_bytes), 0) FROM kv_entries").fetchone()
        return int(used)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        try:
            conn.row_factory = sqlite3.Row
            yield conn
        finally:
            conn.close()

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )

    def _create_schema_v1(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS kv_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                size_bytes INTEGER NOT NULL
            );
            """
        )
