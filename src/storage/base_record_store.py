# src/storage/base_record_store.py - v1
"""Abstract key/value store for misinformation records (keyed by domain)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from factlens.core.models import MisinformationRecord


class BaseRecordStore(ABC):

    @abstractmethod
    async def put(self, key: str, record: MisinformationRecord) -> None:
        """Insert or replace the record for ``key``."""

    @abstractmethod
    async def get(self, key: str) -> MisinformationRecord | None:
        """Record for ``key``, or None."""
