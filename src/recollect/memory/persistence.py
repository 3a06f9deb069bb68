"""Key/value blob persistence for per-session tier snapshots."""

import json
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite

from recollect.core.errors import PersistenceFailure
from recollect.core.logging import get_logger
from recollect.memory.base import MemoryEntry, MemoryTier

logger = get_logger("memory.persistence")

KEY_PREFIX = "recollect"

SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, blob: str) -> None:
        ...


def snapshot_key(tier: MemoryTier, session_id: str) -> str:
    return f"{KEY_PREFIX}_{tier.value}_{session_id}"


def encode_tier(entries: list[MemoryEntry]) -> str:
    """Serialize one tier as a JSON object keyed by entry id."""
    return json.dumps({e.id: e.to_dict() for e in entries}, ensure_ascii=False)


def decode_tier(blob: str) -> list[MemoryEntry]:
    """Inverse of ``encode_tier``. Malformed records are skipped."""
    data = json.loads(blob)
    if not isinstance(data, dict):
        raise ValueError("Tier snapshot must be a JSON object")

    entries = []
    for entry_id, record in data.items():
        try:
            entries.append(MemoryEntry.from_dict(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unreadable snapshot record {entry_id}: {e}")
    return entries


class InMemoryKeyValueStore:
    """Dict-backed store. Useful for tests and ephemeral hosts."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, blob: str) -> None:
        self.data[key] = blob


class SQLiteKeyValueStore:
    """SQLite-backed snapshot store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to snapshot store: {self.db_path}")

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Snapshot store not connected. Call connect() first.")
        return self._conn

    async def get(self, key: str) -> str | None:
        try:
            async with self.conn.execute(
                "SELECT value FROM snapshots WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else None
        except aiosqlite.Error as e:
            raise PersistenceFailure(key, f"read failed: {e}") from e

    async def set(self, key: str, blob: str) -> None:
        try:
            await self.conn.execute(
                """INSERT INTO snapshots (key, value, updated_at)
                   VALUES (?, ?, CURRENT_TIMESTAMP)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value,
                                                  updated_at=CURRENT_TIMESTAMP""",
                (key, blob),
            )
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceFailure(key, f"write failed: {e}") from e

