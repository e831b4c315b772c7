# html_cache/store/redis_store.py
"""
Redis backend: one hash per URL fingerprint.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from html_cache.config import DbConfig
from html_cache.errors import ConfigurationError, CorruptRecordError
from html_cache.logger import logger
from html_cache.renderer.models import CacheRecord
from html_cache.store.base import CacheStore

DEFAULT_PORT = 6379
_FIELDS = frozenset({"hash", "url", "renderDate", "lastmodDate", "contentHash", "content"})


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class RedisStore(CacheStore):
    name = "redis"

    def __init__(self, config: Optional[DbConfig] = None, client: Optional[redis.Redis] = None) -> None:
        super().__init__(config)
        self._client = client
        self._prefix = f"{self.config.collection}:" if self.config.collection else ""

    async def connect(self) -> None:
        cfg = self.config
        if self._client is None:
            self._client = redis.Redis(
                host=cfg.host,
                port=cfg.port or DEFAULT_PORT,
                db=int(cfg.db or 0),
                username=cfg.user,
                password=cfg.passwd,
            )
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            raise ConfigurationError(
                f"Unable to connect to Redis at {cfg.host}:{cfg.port or DEFAULT_PORT}: {exc}"
            ) from exc
        logger.info("Connect to Redis successfully initiated [%s:%s/%s]", cfg.host, cfg.port or DEFAULT_PORT, cfg.db or 0)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _key(self, url_hash: str) -> str:
        return f"{self._prefix}{url_hash}"

    async def find_by_hash(self, url_hash: str) -> Optional[CacheRecord]:
        raw = await self._conn().hgetall(self._key(url_hash))
        if not raw:
            return None
        fields: Dict[str, Any] = {_text(k): v for k, v in raw.items()}
        missing = _FIELDS.difference(fields)
        if missing:
            raise CorruptRecordError(url_hash, missing)
        content = fields["content"]
        try:
            return CacheRecord(
                id=url_hash,
                url_hash=_text(fields["hash"]),
                url=_text(fields["url"]),
                rendered_at=datetime.fromisoformat(_text(fields["renderDate"])),
                source_modified_at=datetime.fromisoformat(_text(fields["lastmodDate"])),
                content_hash=_text(fields["contentHash"]),
                content=content if isinstance(content, bytes) else _text(content).encode("utf-8"),
            )
        except ValueError as exc:
            raise CorruptRecordError(url_hash, ("renderDate", "lastmodDate")) from exc

    async def save(self, record: CacheRecord) -> bool:
        mapping = {
            "hash": record.url_hash,
            "url": record.url,
            "renderDate": record.rendered_at.isoformat(),
            "lastmodDate": record.source_modified_at.isoformat(),
            "contentHash": record.content_hash,
            "content": record.content,
        }
        try:
            async with self._conn().pipeline(transaction=True) as pipe:
                pipe.hset(self._key(record.url_hash), mapping=mapping)
                await pipe.execute()
        except RedisError as exc:
            logger.error("Redis write failed for %s: %s", record.url_hash, exc)
            return False
        return True

    def _conn(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis store not connected")
        return self._client
