"""Table configuration stores.

Stores keep the camelCase wire form and decode on every fetch, so callers
never receive an object another caller can mutate.
"""

from __future__ import annotations

import abc
import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from bimtables.errors import PersistenceError, ValidationError
from bimtables.models.table import TableConfig
from bimtables.persistence.decoder import (
    decode_table_config,
    encode_table_config,
    normalize_keys,
)

logger = logging.getLogger(__name__)


def merge_partial(
    table_id: str,
    existing: Mapping[str, Any] | None,
    partial: Mapping[str, Any],
) -> TableConfig:
    """Overlay *partial* onto *existing* and validate the result.

    Raises :class:`PersistenceError` when the merged payload is invalid.
    """
    merged = normalize_keys(existing or {})
    merged.update(normalize_keys(partial))
    merged["id"] = table_id
    try:
        return decode_table_config(merged)
    except ValidationError as exc:
        raise PersistenceError(f"Cannot save table {table_id}: {exc}") from exc


class TableStore(abc.ABC):
    """Persistence collaborator for named table configurations."""

    @abc.abstractmethod
    async def fetch(self, table_id: str | None = None) -> TableConfig | list[TableConfig] | None:
        """Return one table, or every table when *table_id* is ``None``."""

    @abc.abstractmethod
    async def save(self, table_id: str, partial: Mapping[str, Any]) -> TableConfig:
        """Merge *partial* into the stored table (creating it) and return the result."""

    @abc.abstractmethod
    async def delete(self, table_id: str) -> bool:
        """Delete a table; ``False`` when it did not exist."""


class InMemoryTableStore(TableStore):
    """Dict-backed store with optional latency and failure injection.

    Parameters
    ----------
    latency:
        Seconds each call sleeps before touching the data.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self._tables: dict[str, dict[str, Any]] = {}
        self._failures: list[Exception] = []
        self.save_calls = 0
        self.active_saves = 0
        self.max_concurrent_saves = 0

    def fail_next(self, count: int = 1, error: Exception | None = None) -> None:
        """Make the next *count* saves raise *error*."""
        for _ in range(count):
            self._failures.append(error or PersistenceError("Injected save failure"))

    async def _delay(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    async def fetch(self, table_id: str | None = None) -> TableConfig | list[TableConfig] | None:
        await self._delay()
        if table_id is None:
            return [decode_table_config(raw) for raw in self._tables.values()]
        raw = self._tables.get(table_id)
        return decode_table_config(raw) if raw is not None else None

    async def save(self, table_id: str, partial: Mapping[str, Any]) -> TableConfig:
        self.save_calls += 1
        self.active_saves += 1
        self.max_concurrent_saves = max(self.max_concurrent_saves, self.active_saves)
        try:
            await self._delay()
            if self._failures:
                raise self._failures.pop(0)
            config = merge_partial(table_id, self._tables.get(table_id), partial)
            self._tables[table_id] = json.loads(json.dumps(encode_table_config(config)))
            logger.debug("Stored table %s", table_id)
            return decode_table_config(self._tables[table_id])
        finally:
            self.active_saves -= 1

    async def delete(self, table_id: str) -> bool:
        await self._delay()
        return self._tables.pop(table_id, None) is not None

    def raw(self, table_id: str) -> dict[str, Any] | None:
        """The stored wire dict, for inspection."""
        return self._tables.get(table_id)


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS tables (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    payload_json  TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
"""


class SqliteTableStore(TableStore):
    """Store table configurations as JSON rows in SQLite.

    Parameters
    ----------
    db_path:
        Path to the database file.  Defaults to ``':memory:'``.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        return self._conn

    def _load(self, table_id: str) -> dict[str, Any] | None:
        row = self.conn.execute(
            "SELECT payload_json FROM tables WHERE id = ?", (table_id,)
        ).fetchone()
        return json.loads(row[0]) if row else None

    async def fetch(self, table_id: str | None = None) -> TableConfig | list[TableConfig] | None:
        if table_id is None:
            rows = self.conn.execute("SELECT payload_json FROM tables ORDER BY name").fetchall()
            return [decode_table_config(json.loads(r[0])) for r in rows]
        raw = self._load(table_id)
        return decode_table_config(raw) if raw is not None else None

    async def save(self, table_id: str, partial: Mapping[str, Any]) -> TableConfig:
        config = merge_partial(table_id, self._load(table_id), partial)
        payload = json.dumps(encode_table_config(config))
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO tables (id, name, payload_json, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (table_id, config.name, payload, datetime.now(timezone.utc).isoformat()),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite save failed for {table_id}: {exc}") from exc
        logger.debug("Stored table %s in %s", table_id, self._db_path)
        return config

    async def delete(self, table_id: str) -> bool:
        cur = self.conn.execute("DELETE FROM tables WHERE id = ?", (table_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
