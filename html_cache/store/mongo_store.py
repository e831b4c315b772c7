# html_cache/store/mongo_store.py
"""
MongoDB backend: one document per URL fingerprint, unique index on ``hash``.

Field names match the collections written by earlier HtmlCache deployments
(``hash``, ``url``, ``renderDate``, ``lastmodDate``, ``contentHash``, ``content``).
"""
from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import quote_plus

from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from html_cache.config import DbConfig
from html_cache.errors import ConfigurationError, CorruptRecordError
from html_cache.logger import logger
from html_cache.renderer.models import CacheRecord
from html_cache.store.base import DEFAULT_TABLE, CacheStore

DEFAULT_PORT = 27017
DEFAULT_DB = "html_cache"
SERVER_TIMEOUT_MS = 10_000
_FIELDS = frozenset({"hash", "url", "renderDate", "lastmodDate", "contentHash", "content"})


class MongoStore(CacheStore):
    name = "mongodb"

    def __init__(self, config: Optional[DbConfig] = None, client: Optional[AsyncMongoClient] = None) -> None:
        super().__init__(config)
        self._client = client
        self._collection: Optional[AsyncCollection] = None
        self.database = str(self.config.db) if self.config.db else DEFAULT_DB
        self.collection_name = self.config.collection or DEFAULT_TABLE

    def uri(self, masked: bool = False) -> str:
        """Строка подключения; с *masked* вместо пароля пишется его длина."""
        cfg = self.config
        auth = ""
        if cfg.user and cfg.passwd:
            secret = f"{{PWD: {len(cfg.passwd)} symbols}}" if masked else quote_plus(cfg.passwd)
            auth = f"{quote_plus(cfg.user)}:{secret}@"
        query = "?authSource=admin" if auth else ""
        return f"mongodb://{auth}{cfg.host}:{cfg.port or DEFAULT_PORT}/{self.database}{query}"

    async def connect(self) -> None:
        if self._client is None:
            self._client = AsyncMongoClient(self.uri(), serverSelectionTimeoutMS=SERVER_TIMEOUT_MS)
        try:
            await self._client.admin.command("ping")
            self._collection = self._client[self.database][self.collection_name]
            await self._collection.create_index("hash", unique=True)
        except PyMongoError as exc:
            raise ConfigurationError(f"Unable to connect to MongoDB at {self.uri(masked=True)}: {exc}") from exc
        logger.info("Connect to MongoDB successfully initiated [%s]", self.uri(masked=True))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._collection = None

    async def find_by_hash(self, url_hash: str) -> Optional[CacheRecord]:
        doc = await self._coll().find_one({"hash": url_hash})
        if doc is None:
            return None
        return _record(url_hash, doc)

    async def save(self, record: CacheRecord) -> bool:
        doc = {
            "hash": record.url_hash,
            "url": record.url,
            "renderDate": record.rendered_at,
            "lastmodDate": record.source_modified_at,
            "contentHash": record.content_hash,
            "content": record.content,
        }
        try:
            result = await self._coll().update_one({"hash": record.url_hash}, {"$set": doc}, upsert=True)
        except PyMongoError as exc:
            logger.error("MongoDB write failed for %s: %s", record.url_hash, exc)
            return False
        return result.acknowledged

    def _coll(self) -> AsyncCollection:
        if self._collection is None:
            raise RuntimeError("MongoDB store not connected")
        return self._collection


def _record(url_hash: str, doc: Mapping[str, Any]) -> CacheRecord:
    missing = _FIELDS.difference(doc)
    if missing:
        raise CorruptRecordError(url_hash, missing)
    return CacheRecord(
        id=str(doc["_id"]) if "_id" in doc else None,
        url_hash=doc["hash"],
        url=doc["url"],
        rendered_at=doc["renderDate"],
        source_modified_at=doc["lastmodDate"],
        content_hash=doc["contentHash"],
        content=bytes(doc["content"]),
    )
