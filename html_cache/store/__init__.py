# File: html_cache/store/__init__.py
"""html_cache.store: хранилища кэша рендеров и фабрика выбора по `db_driver`."""

from __future__ import annotations

from typing import Callable, Dict, Optional

from html_cache.config import DbConfig
from html_cache.errors import ConfigurationError
from html_cache.store.base import CacheStore
from html_cache.store.memory import MemoryStore
from html_cache.store.mongo_store import MongoStore
from html_cache.store.mysql_store import MysqlStore
from html_cache.store.redis_store import RedisStore
from html_cache.store.sqlite_store import SqliteStore

_BACKENDS: Dict[str, Callable[[Optional[DbConfig]], CacheStore]] = {
    MemoryStore.name: MemoryStore,
    MongoStore.name: MongoStore,
    MysqlStore.name: MysqlStore,
    RedisStore.name: RedisStore,
    SqliteStore.name: SqliteStore,
}


def available_drivers() -> list[str]:
    return sorted(_BACKENDS)


def create_store(driver: str, config: Optional[DbConfig] = None) -> CacheStore:
    """Возвращает хранилище по идентификатору; для неизвестного идентификатора поднимает ConfigurationError."""
    try:
        backend = _BACKENDS[driver]
    except KeyError:
        raise ConfigurationError(
            f"DB driver not recognized by identifier `{driver}` (available: {', '.join(available_drivers())})"
        ) from None
    return backend(config)


__all__ = [
    "CacheStore",
    "MemoryStore",
    "MongoStore",
    "MysqlStore",
    "RedisStore",
    "SqliteStore",
    "create_store",
    "available_drivers",
]
