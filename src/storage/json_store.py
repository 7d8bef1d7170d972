# src/storage/json_store.py - v1
"""JSON file-based stores (default STORE_BACKEND=json).

One JSON file per history entry under ``<root>/history`` and one per
record under ``<root>/records``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from pydantic import ValidationError

from factlens.core.errors import StoreError
from factlens.core.models import HistoryEntry, MisinformationRecord
from factlens.storage.base_history_store import BaseHistoryStore, newest_first
from factlens.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)


def _safe_name(key: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in key)


class JsonHistoryStore(BaseHistoryStore):
    """History entries as individual JSON files."""

    def __init__(self, root: Path | str) -> None:
        self._dir = Path(root).expanduser() / "history"
        self._dir.mkdir(parents=True, exist_ok=True)

    async def append(self, entry: HistoryEntry) -> None:
        path = self._entry_path(entry.id)
        if path.exists():
            raise StoreError(f"History entry {entry.id!r} already exists")
        try:
            path.write_text(entry.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to write history entry {entry.id!r}: {e}") from e

    async def list_all(self) -> list[HistoryEntry]:
        entries: list[HistoryEntry] = []
        for path in self._dir.glob("*.json"):
            entry = self._load(path)
            if entry is not None:
                entries.append(entry)
        return newest_first(entries)

    async def get(self, entry_id: str) -> HistoryEntry | None:
        path = self._entry_path(entry_id)
        return self._load(path) if path.exists() else None

    async def clear(self) -> None:
        try:
            shutil.rmtree(self._dir)
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to clear history: {e}") from e

    def _entry_path(self, entry_id: str) -> Path:
        return self._dir / f"{_safe_name(entry_id)}.json"

    @staticmethod
    def _load(path: Path) -> HistoryEntry | None:
        try:
            return HistoryEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Skipping unreadable history entry %s: %s", path.name, e)
            return None


class JsonRecordStore(BaseRecordStore):
    """Misinformation records as individual JSON files."""

    def __init__(self, root: Path | str) -> None:
        self._dir = Path(root).expanduser() / "records"
        self._dir.mkdir(parents=True, exist_ok=True)

    async def put(self, key: str, record: MisinformationRecord) -> None:
        try:
            self._path(key).write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to write record {key!r}: {e}") from e

    async def get(self, key: str) -> MisinformationRecord | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return MisinformationRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StoreError(f"Failed to read record {key!r}: {e}") from e

    def _path(self, key: str) -> Path:
        return self._dir / f"{_safe_name(key)}.json"
