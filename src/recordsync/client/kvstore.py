"""Persisted key-value store.

This module provides:
- KeyValueStore: Protocol consumed by the cache and preferences
- SQLiteKeyValueStore: SQLite-backed store that survives restarts
- MemoryKeyValueStore: In-process store (nothing persisted)

The SQLite store serializes access with an RLock and runs every blocking
call in a worker thread so callers on the event loop never block.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Byte-valued persistent storage keyed by string."""

    async def read(self, key: str) -> bytes | None:
        """Return the value for key, or None if absent."""
        ...

    async def write(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""
        ...

    async def remove(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""
        ...

    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with prefix."""
        ...


class SQLiteKeyValueStore:
    """SQLite-based key-value store."""

    def __init__(self, db_path: Path) -> None:
        """Open (or create) the store.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL
            )
            """
        )

    @property
    def path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def _read(self, key: str) -> bytes | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return bytes(row[0]) if row else None

    def _write(self, key: str, value: bytes) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, value),
            )

    def _remove(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def _keys(self, prefix: str) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM kv_store ORDER BY key"
            ).fetchall()
        return [row[0] for row in rows if row[0].startswith(prefix)]

    async def read(self, key: str) -> bytes | None:
        """Return the value for key, or None if absent."""
        return await asyncio.to_thread(self._read, key)

    async def write(self, key: str, value: bytes) -> None:
        """Store value under key."""
        await asyncio.to_thread(self._write, key, value)

    async def remove(self, key: str) -> None:
        """Remove key if present."""
        await asyncio.to_thread(self._remove, key)

    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with prefix."""
        return await asyncio.to_thread(self._keys, prefix)


class MemoryKeyValueStore:
    """Dictionary-backed store. Contents are lost when the process exits."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def read(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def write(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
