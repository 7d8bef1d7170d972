# src/storage/sqlite_store.py - v2
"""SQLite-based stores (STORE_BACKEND=sqlite).

Uses stdlib sqlite3. History and records share one database file.
sqlite3 errors surface as StoreError.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from factlens.core.errors import StoreError
from factlens.core.models import HistoryEntry, MisinformationRecord
from factlens.storage.base_history_store import BaseHistoryStore
from factlens.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS history (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_timestamp ON history(timestamp);
CREATE TABLE IF NOT EXISTS misinformation_records (
    domain TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
"""


def _connect(db_path: Path | str) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.executescript(_SCHEMA)
    return conn


class SqliteHistoryStore(BaseHistoryStore):
    def __init__(self, db_path: Path | str) -> None:
        self._conn = _connect(db_path)

    async def append(self, entry: HistoryEntry) -> None:
        try:
            self._conn.execute(
                "INSERT INTO history (id, timestamp, data) VALUES (?, ?, ?)",
                (entry.id, entry.timestamp.isoformat(), entry.model_dump_json()),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as e:
            raise StoreError(f"History entry {entry.id!r} already exists") from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write history entry {entry.id!r}: {e}") from e

    async def list_all(self) -> list[HistoryEntry]:
        try:
            rows = self._conn.execute(
                "SELECT id, data FROM history ORDER BY timestamp DESC, id DESC"
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read history: {e}") from e
        entries: list[HistoryEntry] = []
        for entry_id, data in rows:
            try:
                entries.append(HistoryEntry.model_validate_json(data))
            except ValidationError as e:
                logger.warning("Skipping unreadable history entry %s: %s", entry_id, e)
        return entries

    async def get(self, entry_id: str) -> HistoryEntry | None:
        try:
            row = self._conn.execute(
                "SELECT data FROM history WHERE id = ?", (entry_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read history entry {entry_id!r}: {e}") from e
        if row is None:
            return None
        try:
            return HistoryEntry.model_validate_json(row[0])
        except ValidationError as e:
            logger.warning("Skipping unreadable history entry %s: %s", entry_id, e)
            return None

    async def clear(self) -> None:
        try:
            self._conn.execute("DELETE FROM history")
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to clear history: {e}") from e

    def close(self) -> None:
        self._conn.close()


class SqliteRecordStore(BaseRecordStore):
    def __init__(self, db_path: Path | str) -> None:
        self._conn = _connect(db_path)

    async def put(self, key: str, record: MisinformationRecord) -> None:
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO misinformation_records (domain, data) VALUES (?, ?)",
                (key, record.model_dump_json()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write record {key!r}: {e}") from e

    async def get(self, key: str) -> MisinformationRecord | None:
        try:
            row = self._conn.execute(
                "SELECT data FROM misinformation_records WHERE domain = ?", (key,)
            ).fetchone()
            return MisinformationRecord.model_validate_json(row[0]) if row else None
        except (sqlite3.Error, ValidationError) as e:
            raise StoreError(f"Failed to read record {key!r}: {e}") from e

    def close(self) -> None:
        self._conn.close()
