# src/storage/memory_store.py - v1
"""In-process stores (STORE_BACKEND=memory); nothing survives the process."""

from __future__ import annotations

from factlens.core.errors import StoreError
from factlens.core.models import HistoryEntry, MisinformationRecord
from factlens.storage.base_history_store import BaseHistoryStore, newest_first
from factlens.storage.base_record_store import BaseRecordStore


class MemoryHistoryStore(BaseHistoryStore):
    def __init__(self) -> None:
        self._entries: dict[str, HistoryEntry] = {}

    async def append(self, entry: HistoryEntry) -> None:
        if entry.id in self._entries:
            raise StoreError(f"History entry {entry.id!r} already exists")
        self._entries[entry.id] = entry

    async def list_all(self) -> list[HistoryEntry]:
        return newest_first(list(self._entries.values()))

    async def get(self, entry_id: str) -> HistoryEntry | None:
        return self._entries.get(entry_id)

    async def clear(self) -> None:
        self._entries.clear()


class MemoryRecordStore(BaseRecordStore):
    def __init__(self) -> None:
        self._records: dict[str, MisinformationRecord] = {}

    async def put(self, key: str, record: MisinformationRecord) -> None:
        self._records[key] = record

    async def get(self, key: str) -> MisinformationRecord | None:
        return self._records.get(key)
