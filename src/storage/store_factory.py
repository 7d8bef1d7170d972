# src/storage/store_factory.py - v1
"""Factory for history and record store instantiation."""

from __future__ import annotations

from factlens.config.settings import Settings
from factlens.storage.base_history_store import BaseHistoryStore
from factlens.storage.base_record_store import BaseRecordStore

SQLITE_FILENAME = "factlens.db"


def create_history_store(settings: Settings | None = None) -> BaseHistoryStore:
    """Instantiate the configured history backend (JSON by default)."""
    settings = settings or Settings()
    backend = settings.store_backend

    if backend == "json":
        from factlens.storage.json_store import JsonHistoryStore
        return JsonHistoryStore(settings.store_path)

    if backend == "sqlite":
        from factlens.storage.sqlite_store import SqliteHistoryStore
        return SqliteHistoryStore(settings.store_path / SQLITE_FILENAME)

    if backend == "memory":
        from factlens.storage.memory_store import MemoryHistoryStore
        return MemoryHistoryStore()

    raise ValueError(f"Unsupported store backend: {backend!r}")


def create_record_store(settings: Settings | None = None) -> BaseRecordStore:
    """Instantiate the configured misinformation record backend."""
    settings = settings or Settings()
    backend = settings.store_backend

    if backend == "json":
        from factlens.storage.json_store import JsonRecordStore
        return JsonRecordStore(settings.store_path)

    if backend == "sqlite":
        from factlens.storage.sqlite_store import SqliteRecordStore
        return SqliteRecordStore(settings.store_path / SQLITE_FILENAME)

    if backend == "memory":
        from factlens.storage.memory_store import MemoryRecordStore
        return MemoryRecordStore()

    raise ValueError(f"Unsupported store backend: {backend!r}")
