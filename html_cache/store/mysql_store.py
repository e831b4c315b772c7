# html_cache/store/mysql_store.py
"""
MySQL backend on aiomysql; one row per URL fingerprint, unique key on ``hash``.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

import aiomysql

from html_cache.config import DbConfig
from html_cache.errors import ConfigurationError, CorruptRecordError
from html_cache.logger import logger
from html_cache.renderer.models import CacheRecord
from html_cache.store.base import CacheStore, checked_table_name
from html_cache.utils import as_utc_naive

DEFAULT_PORT = 3306
_COLUMNS = ("hash", "url", "renderDate", "lastmodDate", "contentHash", "content")


class MysqlStore(CacheStore):
    """
    Колонки совпадают с таблицами прежних развёртываний HtmlCache.
    Даты хранятся в DATETIME(6) как UTC без зоны.
    """

    name = "mysql"

    def __init__(self, config: Optional[DbConfig] = None, pool: Optional[aiomysql.Pool] = None) -> None:
        super().__init__(config)
        self.table = checked_table_name(self.config.table)
        self._pool = pool

    def _dsn(self) -> str:
        cfg = self.config
        user = f"{cfg.user}@" if cfg.user else ""
        return f"mysql://{user}{cfg.host}:{cfg.port or DEFAULT_PORT}/{cfg.db or ''}"

    async def connect(self) -> None:
        cfg = self.config
        try:
            if self._pool is None:
                self._pool = await aiomysql.create_pool(
                    host=cfg.host,
                    port=cfg.port or DEFAULT_PORT,
                    user=cfg.user,
                    password=cfg.passwd or "",
                    db=str(cfg.db) if cfg.db is not None else None,
                    autocommit=True,
                )
            await self._create_schema()
        except (aiomysql.Error, OSError) as exc:
            raise ConfigurationError(f"Unable to connect to MySQL at {self._dsn()}: {exc}") from exc
        logger.info("Connect to Mysql successfully initiated [%s, table `%s`]", self._dsn(), self.table)

    async def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None

    async def _create_schema(self) -> None:
        await self._execute(
            f"""
            CREATE TABLE IF NOT EXISTS `{self.table}` (
              `id`          INT NOT NULL AUTO_INCREMENT PRIMARY KEY,
              `hash`        VARCHAR(32) NOT NULL,
              `url`         VARCHAR(2048) NOT NULL,
              `renderDate`  DATETIME(6) NOT NULL,
              `lastmodDate` DATETIME(6) NOT NULL,
              `contentHash` VARCHAR(32) NOT NULL,
              `content`     MEDIUMBLOB NOT NULL,
              UNIQUE KEY `uq_{self.table}_hash` (`hash`)
            ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
            """
        )

    async def find_by_hash(self, url_hash: str) -> Optional[CacheRecord]:
        async with self._conn().acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cur:
                await cur.execute(
                    f"SELECT `id`, {_column_list()} FROM `{self.table}` WHERE `hash` = %s LIMIT 1",
                    (url_hash,),
                )
                row = await cur.fetchone()
        if row is None:
            return None
        return _record(url_hash, row)

    async def save(self, record: CacheRecord) -> bool:
        updates = ", ".join(f"`{c}` = VALUES(`{c}`)" for c in _COLUMNS[1:])
        try:
            await self._execute(
                f"INSERT INTO `{self.table}` ({_column_list()}) VALUES (%s, %s, %s, %s, %s, %s) "
                f"ON DUPLICATE KEY UPDATE {updates}",
                (
                    record.url_hash,
                    record.url,
                    as_utc_naive(record.rendered_at),
                    as_utc_naive(record.source_modified_at),
                    record.content_hash,
                    record.content,
                ),
            )
        except aiomysql.Error as exc:
            logger.error("MySQL write failed for %s: %s", record.url_hash, exc)
            return False
        return True

    async def _execute(self, sql: str, args: Optional[tuple] = None) -> int:
        async with self._conn().acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, args)
                return cur.rowcount

    def _conn(self) -> aiomysql.Pool:
        if self._pool is None:
            raise RuntimeError("MySQL store not connected")
        return self._pool


def _column_list() -> str:
    return ", ".join(f"`{c}`" for c in _COLUMNS)


def _record(url_hash: str, row: Mapping[str, Any]) -> CacheRecord:
    missing = {c for c in _COLUMNS if row.get(c) is None}
    if missing:
        raise CorruptRecordError(url_hash, missing)
    return CacheRecord(
        id=str(row["id"]),
        url_hash=row["hash"],
        url=row["url"],
        rendered_at=row["renderDate"],
        source_modified_at=row["lastmodDate"],
        content_hash=row["contentHash"],
        content=bytes(row["content"]),
    )
