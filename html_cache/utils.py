# File: html_cache/utils.py
"""html_cache.utils: Утилитарные функции для обработки URL и списков sitemap."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from html_cache.logger import logger
from html_cache.renderer.models import UrlEntry

__all__: Sequence[str] = (
    "with_query_flag",
    "remove_duplicates",
    "format_elapsed",
    "as_utc_naive",
)


def with_query_flag(uri: str, flag: str) -> str:
    """Добавляет флаг (``key=value``) в query-строку URL, сохраняя существующие параметры."""
    if not flag:
        return uri
    base, sep, fragment = uri.partition("#")
    joiner = "&" if "?" in base else "?"
    return f"{base}{joiner}{flag}{sep}{fragment}"


def remove_duplicates(entries: Iterable[UrlEntry]) -> List[UrlEntry]:
    """Удаляет повторяющиеся URL, сохраняя первое вхождение и порядок."""
    seen: dict[str, UrlEntry] = {}
    total = 0
    for entry in entries:
        total += 1
        seen.setdefault(entry.uri, entry)
    unique = list(seen.values())
    removed = total - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique


def format_elapsed(seconds: float) -> str:
    """``HH:MM:SS.mmm`` для строк прогресса."""
    minutes, sec = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours:02d}:{minutes:02d}:{sec:06.3f}"


def as_utc_naive(value: datetime) -> datetime:
    """Переводит дату в UTC без tzinfo; наивные даты уже считаются UTC (так их отдают MySQL и MongoDB)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
