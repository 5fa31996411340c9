from typing import Dict, List, Optional, Tuple
from pathlib import Path
import asyncio
import json
import sqlite3
import structlog

from jack.domain.exceptions import MemoryStoreError
from jack.domain.models import MemoryEntry, MemoryValue, now_ms

logger = structlog.get_logger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS memory (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    type TEXT NOT NULL,
    updated_at INTEGER NOT NULL
)
"""


def serialize_value(value: MemoryValue) -> Tuple[str, str]:
    """Serialize a memory value into (text, type tag)"""

    if value is None:
        return "null", "null"
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return ("true" if value else "false"), "boolean"
    if isinstance(value, (int, float)):
        return json.dumps(value), "number"
    if isinstance(value, str):
        return value, "string"
    raise TypeError(f"Unsupported memory value type: {type(value).__name__}")


def deserialize_value(serialized: str, value_type: str) -> MemoryValue:
    """Restore a memory value from its text and type tag"""

    if value_type == "null":
        return None
    if value_type == "boolean":
        return serialized == "true"
    if value_type == "number":
        return json.loads(serialized)
    return serialized


class PersistentMemoryStore:
    """Long-term namespaced key-value memory backed by SQLite.

    Keys are namespaced (``user.name``, ``preference.theme``,
    ``project.myapp.path``) and values are primitives. Memory is global
    across clients, never expires, and survives restarts. Writes are
    serialized by a lock within the process; last write wins.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    def initialize(self):
        """Open the database and create the memory table"""

        if self._conn is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute(_SCHEMA)
        self._conn.commit()

        logger.info("Memory store initialized", db_path=self.db_path)

    def close(self):
        """Close the database"""

        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise MemoryStoreError("Database not initialized")
        return self._conn

    async def get(self, key: str) -> MemoryValue:
        """Get a value by key, None when absent"""

        entry = await self.get_entry(key)
        return entry.value if entry else None

    async def get_entry(self, key: str) -> Optional[MemoryEntry]:
        """Get a full memory row by key"""

        async with self._lock:
            row = self.conn.execute(
                "SELECT value, type, updated_at FROM memory WHERE key = ?",
                (key,)
            ).fetchone()

        if row is None:
            return None

        return MemoryEntry(key=key, value=deserialize_value(row[0], row[1]), updated_at=row[2])

    async def set(self, key: str, value: MemoryValue):
        """Set a value by key"""

        serialized, value_type = serialize_value(value)

        async with self._lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO memory (key, value, type, updated_at) VALUES (?, ?, ?, ?)",
                (key, serialized, value_type, now_ms())
            )
            self.conn.commit()

    async def delete(self, key: str):
        """Delete a value by key"""

        async with self._lock:
            self.conn.execute("DELETE FROM memory WHERE key = ?", (key,))
            self.conn.commit()

    async def get_namespace(self, prefix: str) -> Dict[str, MemoryValue]:
        """Get every key-value pair under ``prefix.``"""

        # substr rather than LIKE: exact, case-sensitive, no wildcard escaping
        namespace = f"{prefix}."
        async with self._lock:
            rows = self.conn.execute(
                "SELECT key, value, type FROM memory WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(namespace), namespace)
            ).fetchall()

        return {key: deserialize_value(value, value_type) for key, value, value_type in rows}

    async def keys(self) -> List[str]:
        """Get all keys"""

        async with self._lock:
            rows = self.conn.execute("SELECT key FROM memory ORDER BY key").fetchall()

        return [row[0] for row in rows]

    async def clear(self):
        """Clear all memory"""

        async with self._lock:
            self.conn.execute("DELETE FROM memory")
            self.conn.commit()
