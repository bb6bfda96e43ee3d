"""
Durable key-value store bindings for the player catalog cache.

The cache only needs ``get(key)`` and ``put(key, value, expiration_ttl)``.
SQLiteKVStore is the default durable tier; MemoryKVStore is used for local runs
and tests. Both honour the TTL on read: an expired value reads as a miss.
"""

import logging
import sqlite3
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple, Union

import aiosqlite

logger = logging.getLogger(__name__)


class KVStore(Protocol):
    """Interface of the durable cache binding."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str, expiration_ttl: Optional[int] = None) -> None:
        ...


class MemoryKVStore:
    """Dictionary-backed store with per-key expiry."""

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.RLock()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.time():
                del self._data[key]
                return None
            return value

    async def put(self, key: str, value: str, expiration_ttl: Optional[int] = None) -> None:
        expires_at = time.time() + expiration_ttl if expiration_ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    async def close(self) -> None:
        with self._lock:
            self._data.clear()


class SQLiteKVStore:
    """
    SQLite-backed durable store.

    The schema is created synchronously on construction; reads and writes go
    through aiosqlite so the event loop is never held up by disk I/O.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Union[str, Path] = "sleeper_cache.db"):
        self.db_path = Path(db_path)
        self._ensure_database()

    def _ensure_database(self) -> None:
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_kv_expires ON kv_entries(expires_at)")
            conn.execute(f"PRAGMA user_version={self.SCHEMA_VERSION}")
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"KV store ready at {self.db_path}")

    @asynccontextmanager
    async def _get_async_connection(self):
        async with aiosqlite.connect(str(self.db_path)) as conn:
            await conn.execute("PRAGMA busy_timeout=30000")
            yield conn

    async def get(self, key: str) -> Optional[str]:
        now = time.time()
        async with self._get_async_connection() as conn:
            async with conn.execute(
                "SELECT value, expires_at FROM kv_entries WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            value, expires_at = row
            if expires_at is not None and expires_at <= now:
                await conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
                await conn.commit()
                return None
            return value

    async def put(self, key: str, value: str, expiration_ttl: Optional[int] = None) -> None:
        now = time.time()
        expires_at = now + expiration_ttl if expiration_ttl else None
        async with self._get_async_connection() as conn:
            await conn.execute(
                """
                INSERT INTO kv_entries (key, value, expires_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (key, value, expires_at, now),
            )
            await conn.commit()

    async def delete(self, key: str) -> None:
        async with self._get_async_connection() as conn:
            await conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            await conn.commit()

    async def purge_expired(self) -> int:
        """Delete expired rows, returning how many were removed."""
        async with self._get_async_connection() as conn:
            cursor = await conn.execute(
                "DELETE FROM kv_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (time.time(),),
            )
            await conn.commit()
            return cursor.rowcount

    async def close(self) -> None:
        removed = await self.purge_expired()
        if removed:
            logger.info(f"Purged {removed} expired cache entries")
