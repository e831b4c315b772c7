# html_cache/store/memory.py
"""
In-process store; contents vanish with the process.
"""
from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Dict, Optional

from html_cache.config import DbConfig
from html_cache.renderer.models import CacheRecord
from html_cache.store.base import CacheStore


class MemoryStore(CacheStore):
    name = "memory"

    def __init__(self, config: Optional[DbConfig] = None) -> None:
        super().__init__(config)
        self._records: Dict[str, CacheRecord] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._records)

    async def find_by_hash(self, url_hash: str) -> Optional[CacheRecord]:
        record = self._records.get(url_hash)
        return replace(record) if record is not None else None

    async def save(self, record: CacheRecord) -> bool:
        current = self._records.get(record.url_hash)
        record_id = record.id or (current.id if current is not None else str(next(self._ids)))
        self._records[record.url_hash] = replace(record, id=record_id)
        return True
