"""Staleness decisions for cached renders.

Two checks, cheapest first:

1. the source's ``lastmod`` equals the one stored with the record → the page is
   not rendered at all;
2. the page was rendered and the normalized HTML hashes to the stored
   ``content_hash`` → nothing is written.

Anything else means the record has to be (re)written.
"""
from __future__ import annotations

import hashlib
import re
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from html_cache.renderer.models import CacheRecord, UrlEntry
from html_cache.utils import as_utc_naive

__all__ = [
    "Decision",
    "url_hash",
    "content_hash",
    "normalize_html",
    "decide",
    "build_record",
]


class Decision(str, Enum):
    SKIP_NOT_MODIFIED = "skip-not-modified"
    SKIP_UNCHANGED = "skip-unchanged"
    UPDATE = "update"

    @property
    def skipped(self) -> bool:
        return self is not Decision.UPDATE


def url_hash(uri: str) -> str:
    """Lower-case hex MD5 of the URL's UTF-8 bytes."""
    return hashlib.md5(uri.encode("utf-8")).hexdigest()


def content_hash(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def normalize_html(html: str, strip_patterns: Iterable[str]) -> str:
    """Remove volatile fragments so they do not change the content hash."""
    for pattern in strip_patterns:
        html = re.sub(pattern, "", html)
    return html


def decide(
    existing: Optional[CacheRecord],
    entry: UrlEntry,
    fresh_content_hash: Optional[str] = None,
) -> Decision:
    """Decide whether the cached record for *entry* can be kept.

    Without *fresh_content_hash* only the timestamp check is possible, so any
    result other than :attr:`Decision.SKIP_NOT_MODIFIED` means "render it".
    """
    if existing is not None and as_utc_naive(existing.source_modified_at) == as_utc_naive(entry.last_modified):
        return Decision.SKIP_NOT_MODIFIED
    if fresh_content_hash is None:
        return Decision.UPDATE
    if existing is not None and existing.content_hash == fresh_content_hash:
        return Decision.SKIP_UNCHANGED
    return Decision.UPDATE


def build_record(
    existing: Optional[CacheRecord],
    entry: UrlEntry,
    content: bytes,
    fresh_content_hash: str,
    rendered_at: datetime,
) -> CacheRecord:
    """Full overwrite of the record for *entry*; only the backend id survives."""
    return CacheRecord(
        id=existing.id if existing is not None else None,
        url_hash=url_hash(entry.uri),
        url=entry.uri,
        rendered_at=rendered_at,
        source_modified_at=entry.last_modified,
        content_hash=fresh_content_hash,
        content=content,
    )
