"""Durable response cache backed by SQLite.

Entries are ``(key, payload, timestamp)`` rows. Staleness is decided by the
reader at lookup time; nothing is ever evicted in the background.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Self

import aiosqlite

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS api_cache (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    timestamp REAL NOT NULL
)
"""

# Storage failures are logged and swallowed at the cache boundary.
_STORAGE_ERRORS = (aiosqlite.Error, OSError, TypeError, ValueError)


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload and the time it was written.

    Attributes:
        key: Opaque cache key.
        data: JSON-compatible payload.
        timestamp: Write time in seconds since the epoch.
    """

    key: str
    data: Any
    timestamp: float

    def is_stale(self, ttl: float, now: float) -> bool:
        """Check the entry against a time-to-live.

        Args:
            ttl: Time-to-live in seconds.
            now: Current time in seconds since the epoch.

        Returns:
            True once the entry is at least ``ttl`` seconds old.
        """
        return now - self.timestamp >= ttl


class ResponseCache:
    """Async key/value cache persisted in a SQLite file.

    ``get`` and ``put`` never raise: on storage failure ``get`` returns
    None and ``put`` does nothing, both logging a warning.

    Attributes:
        path: SQLite database path, or ``":memory:"``.
        clock: Time source in seconds since the epoch.
    """

    def __init__(self, path: Path | str, clock: Callable[[], float] = time.time):
        """Initialize cache.

        Args:
            path: SQLite database path, or ``":memory:"``.
            clock: Time source used to stamp writes.
        """
        self.path = path
        self.clock = clock
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def _connect(self) -> aiosqlite.Connection:
        if self._db is None:
            if str(self.path) != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(str(self.path))
            try:
                await db.execute(_SCHEMA)
                await db.commit()
            except aiosqlite.Error:
                await db.close()
                raise
            self._db = db
        return self._db

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def get(self, key: str) -> CacheEntry | None:
        """Look up an entry regardless of its age.

        Args:
            key: Cache key.

        Returns:
            The stored entry, or None if absent or unreadable.
        """
        try:
            db = await self._connect()
            async with db.execute(
                "SELECT data, timestamp FROM api_cache WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            return CacheEntry(key=key, data=json.loads(row[0]), timestamp=row[1])
        except _STORAGE_ERRORS as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

    async def put(self, key: str, data: Any) -> None:
        """Write or overwrite an entry stamped with the current time.

        Args:
            key: Cache key.
            data: JSON-compatible payload.
        """
        try:
            payload = json.dumps(data)
            db = await self._connect()
            await db.execute(
                """INSERT INTO api_cache (key, data, timestamp) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       data=excluded.data, timestamp=excluded.timestamp""",
                (key, payload, self.clock()),
            )
            await db.commit()
        except _STORAGE_ERRORS as e:
            logger.warning("Cache write failed for %s: %s", key, e)
