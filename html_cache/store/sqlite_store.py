# html_cache/store/sqlite_store.py
"""
SQLite backend on aiosqlite; one row per URL fingerprint.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from html_cache.config import DbConfig
from html_cache.errors import ConfigurationError
from html_cache.logger import logger
from html_cache.renderer.models import CacheRecord
from html_cache.store.base import CacheStore, checked_table_name

DEFAULT_PATH = "html-cache.sqlite3"


class SqliteStore(CacheStore):
    name = "sqlite"

    def __init__(self, config: Optional[DbConfig] = None) -> None:
        super().__init__(config)
        self.table = checked_table_name(self.config.table)
        self.path = self.config.path or (str(self.config.db) if self.config.db else DEFAULT_PATH)
        self._db: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        if self.path != ":memory:":
            Path(self.path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(self.path)
            self._db.row_factory = aiosqlite.Row
            await self._create_schema()
        except (aiosqlite.Error, OSError) as exc:
            raise ConfigurationError(f"Unable to open SQLite database {self.path}: {exc}") from exc
        logger.info("Connect to SQLite successfully initiated [%s, table `%s`]", self.path, self.table)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def _create_schema(self) -> None:
        db = self._conn()
        await db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
              id           INTEGER PRIMARY KEY AUTOINCREMENT,
              hash         TEXT NOT NULL UNIQUE,
              url          TEXT NOT NULL,
              render_date  TEXT NOT NULL,
              lastmod_date TEXT NOT NULL,
              content_hash TEXT NOT NULL,
              content      BLOB NOT NULL
            );
            """
        )
        await db.commit()

    async def find_by_hash(self, url_hash: str) -> Optional[CacheRecord]:
        async with self._conn().execute(
            f"SELECT * FROM {self.table} WHERE hash = ? LIMIT 1", (url_hash,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return CacheRecord(
            id=str(row["id"]),
            url_hash=row["hash"],
            url=row["url"],
            rendered_at=datetime.fromisoformat(row["render_date"]),
            source_modified_at=datetime.fromisoformat(row["lastmod_date"]),
            content_hash=row["content_hash"],
            content=bytes(row["content"]),
        )

    async def save(self, record: CacheRecord) -> bool:
        db = self._conn()
        async with db.execute(
            f"""
            INSERT INTO {self.table} (hash, url, render_date, lastmod_date, content_hash, content)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(hash) DO UPDATE SET
                url = excluded.url,
                render_date = excluded.render_date,
                lastmod_date = excluded.lastmod_date,
                content_hash = excluded.content_hash,
                content = excluded.content
            """,
            (
                record.url_hash,
                record.url,
                record.rendered_at.isoformat(),
                record.source_modified_at.isoformat(),
                record.content_hash,
                record.content,
            ),
        ) as cursor:
            written = cursor.rowcount > 0
        await db.commit()
        return written

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLite store not connected")
        return self._db
