"""
Deadswitch Cache Storage

Key-value cache used only to avoid redundant remote calls. Never a source
of truth. Every entry records when it was stored so callers can apply a
freshness window.

Keys in use:
    address:<network>:<pubkey hex>  -> derived address (no expiry)
    balance:<address>               -> satoshis as decimal string
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import aiosqlite

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: str
    stored_at: int

    def age(self, now: int) -> int:
        return now - self.stored_at

    def is_fresh(self, ttl: int, now: int) -> bool:
        """True while the entry is younger than ttl seconds."""
        return 0 <= self.age(now) < ttl


class CacheStore(ABC):
    """Injectable async cache abstraction."""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, stored_at: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    async def get_fresh(self, key: str, ttl: int, now: int) -> Optional[CacheEntry]:
        """Return the entry only if it is younger than ttl."""
        entry = await self.get(key)
        if entry is None or not entry.is_fresh(ttl, now):
            return None
        return entry

    async def close(self) -> None:
        pass


@dataclass
class MemoryCache(CacheStore):
    """In-process dict cache."""
    _entries: Dict[str, CacheEntry] = field(default_factory=dict)

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def set(self, key: str, value: str, stored_at: int) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=stored_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    stored_at INTEGER NOT NULL
);
"""


@dataclass
class SqliteCache(CacheStore):
    """
    SQLite-backed cache persisted across client restarts.

    connect() must be awaited before use (or use ``async with``).
    """
    db_path: str
    _conn: Optional[aiosqlite.Connection] = None

    def __post_init__(self):
        self._conn = None

    async def connect(self) -> None:
        """Open database connection and initialize schema."""
        if self._conn is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.executescript(CREATE_TABLES_SQL)
        await self._conn.commit()
        logger.debug(f"Cache opened at {self.db_path}")

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> SqliteCache:
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteCache not connected")
        return self._conn

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self.conn.execute(
            "SELECT value, stored_at FROM cache WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return CacheEntry(value=row[0], stored_at=int(row[1]))

    async def set(self, key: str, value: str, stored_at: int) -> None:
        await self.conn.execute(
            "INSERT OR REPLACE INTO cache (key, value, stored_at) VALUES (?, ?, ?)",
            (key, value, stored_at),
        )
        await self.conn.commit()

    async def delete(self, key: str) -> None:
        await self.conn.execute("DELETE FROM cache WHERE key = ?", (key,))
        await self.conn.commit()

    async def clear(self) -> None:
        await self.conn.execute("DELETE FROM cache")
        await self.conn.commit()
