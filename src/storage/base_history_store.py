# src/storage/base_history_store.py - v1
"""Abstract history store: append-only log of completed runs."""

from __future__ import annotations

from abc import ABC, abstractmethod

from factlens.core.models import HistoryEntry


class BaseHistoryStore(ABC):
    """Unified interface for history backends.

    Entries are never updated in place; removal is a bulk ``clear()`` only.
    Backends raise StoreError on I/O failure.
    """

    @abstractmethod
    async def append(self, entry: HistoryEntry) -> None:
        """Persist a new entry. Appending an existing id raises StoreError."""

    @abstractmethod
    async def list_all(self) -> list[HistoryEntry]:
        """All entries, newest first."""

    @abstractmethod
    async def get(self, entry_id: str) -> HistoryEntry | None:
        """Entry by id, or None."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry."""


def newest_first(entries: list[HistoryEntry]) -> list[HistoryEntry]:
    return sorted(entries, key=lambda e: (e.timestamp, e.id), reverse=True)
