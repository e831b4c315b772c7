# html_cache/store/base.py
"""
Contract every cache store backend implements.
"""
from __future__ import annotations

import abc
import re
from typing import Optional

from html_cache.config import DbConfig
from html_cache.errors import ConfigurationError
from html_cache.renderer.models import CacheRecord

DEFAULT_TABLE = "renders"
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def checked_table_name(name: Optional[str]) -> str:
    """Table name for SQL backends; it is interpolated into statements, so only identifiers pass."""
    table = name or DEFAULT_TABLE
    if not _IDENTIFIER_RE.match(table):
        raise ConfigurationError(f"Invalid table name `{table}`")
    return table


class CacheStore(abc.ABC):
    """Point lookups and upserts of :class:`CacheRecord` keyed by ``url_hash``."""

    name: str = ""

    def __init__(self, config: Optional[DbConfig] = None) -> None:
        self.config = config or DbConfig()

    async def __aenter__(self) -> CacheStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open connections; raise ConfigurationError if the backend is unreachable."""

    async def close(self) -> None:
        """Release connections."""

    @abc.abstractmethod
    async def find_by_hash(self, url_hash: str) -> Optional[CacheRecord]:
        """Return the record stored for *url_hash* or None."""

    @abc.abstractmethod
    async def save(self, record: CacheRecord) -> bool:
        """Upsert *record*; True means the backend acknowledged the write."""
