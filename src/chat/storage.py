from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


_ITEMS_DDL = """
CREATE TABLE IF NOT EXISTS local_items (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class KeyValueStorage(Protocol):
    """String key-value storage with the semantics of browser local storage."""

    async def init(self) -> None: ...

    async def get_item(self, key: str) -> Optional[str]: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class InMemoryKeyValueStorage:
    """Process-local storage; contents vanish with the process."""

    def __init__(self, items: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(items or {})

    @property
    def items(self) -> dict[str, str]:
        return dict(self._items)

    async def init(self) -> None:
        return None

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class SQLiteKeyValueStorage:
    """SQLite-backed key-value storage surviving process restarts."""

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        if path.name != ":memory:":
            if not path.is_absolute():
                path = Path.cwd() / path
            if path.suffix != ".db":
                path = path.with_suffix(".db")
        self._db_path = str(path)
        self._write_lock = asyncio.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    async def init(self) -> None:
        """Create the backing table if needed."""
        db_path_obj = Path(self._db_path)
        if db_path_obj.name != ":memory:":
            db_path_obj.parent.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(self._execute, _ITEMS_DDL)
        logger.info("Local storage initialised at %s", self._db_path)

    async def get_item(self, key: str) -> Optional[str]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT value FROM local_items WHERE key = ?",
            (key,),
        )
        return row["value"] if row else None

    async def set_item(self, key: str, value: str) -> None:
        async with self._write_lock:
            await asyncio.to_thread(
                self._execute,
                "INSERT INTO local_items (key, value) VALUES (?, ?)"
                " ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    async def remove_item(self, key: str) -> None:
        async with self._write_lock:
            await asyncio.to_thread(
                self._execute,
                "DELETE FROM local_items WHERE key = ?",
                (key,),
            )

    def _execute(self, query: str, params: tuple = ()) -> None:
        with sqlite3.connect(self._db_path) as connection:
            connection.execute("PRAGMA journal_mode = WAL;")
            connection.execute(query, params)
            connection.commit()

    def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with sqlite3.connect(self._db_path) as connection:
            connection.row_factory = sqlite3.Row
            cursor = connection.execute(query, params)
            return cursor.fetchone()
