"""
String key/value storage backends for the image cache.

The image cache only needs four primitives from its storage medium:
lookup, write, delete and key enumeration. Two backends are provided:
- MemoryStorage: dict-backed, with an optional byte quota
- SQLiteStorage: durable single-table store that survives restarts

Backends raise StorageError (or StorageQuotaExceededError) on failure;
callers decide how to degrade.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Protocol

from sfcache.exceptions import StorageError, StorageQuotaExceededError
from sfcache.logging import get_logger

logger = get_logger(__name__)


class KeyValueStorage(Protocol):
    """Protocol implemented by string key/value stores."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStorage:
    """Process-local storage suitable for development/test workloads.

    If quota_bytes is set, a write that would push the summed length of all
    values over the quota raises StorageQuotaExceededError and leaves the
    store unchanged.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            current = sum(len(v) for k, v in self._items.items() if k != key)
            required = current + len(value)
            if required > self.quota_bytes:
                raise StorageQuotaExceededError(
                    "Storage quota exceeded",
                    context={
                        "key": key,
                        "quota_bytes": self.quota_bytes,
                        "required_bytes": required,
                    },
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items.keys())

    def __len__(self) -> int:
        return len(self._items)


class SQLiteStorage:
    """SQLite-backed key/value store.

    One table, one row per key. Writes are committed immediately so entries
    survive a process restart. Single-writer; the caches never write from
    more than one thread.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize SQLiteStorage.

        Args:
            db_path: Path to the SQLite file. Parent directories are created.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection, creating the schema on first use."""
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), timeout=30.0)
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
                conn.commit()
            except (sqlite3.Error, OSError) as e:
                raise StorageError(
                    "Failed to open image store",
                    context={"db_path": str(self.db_path), "error": str(e)},
                ) from e
            self._conn = conn
            logger.debug("Opened image store", db_path=str(self.db_path))
        return self._conn

    def get_item(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(
                "Failed to read from image store",
                context={"key": key, "operation": "get", "error": str(e)},
            ) from e
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value)
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                "Failed to write to image store",
                context={"key": key, "operation": "set", "error": str(e)},
            ) from e

    def remove_item(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                "Failed to delete from image store",
                context={"key": key, "operation": "remove", "error": str(e)},
            ) from e

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT key FROM kv").fetchall()
        except sqlite3.Error as e:
            raise StorageError(
                "Failed to list image store keys",
                context={"operation": "keys", "error": str(e)},
            ) from e
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SQLiteStorage:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
