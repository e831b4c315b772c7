# html_cache/renderer/models.py
"""
Data models shared by the render pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class UrlEntry:
    """One sitemap entry: crawl target and the source's last modification time."""

    uri: str
    last_modified: datetime


@dataclass(slots=True)
class CacheRecord:
    """Last known rendered state of one URL, as persisted by a cache store."""

    url_hash: str
    url: str
    rendered_at: datetime
    source_modified_at: datetime
    content_hash: str
    content: bytes
    id: Optional[str] = None


@dataclass(slots=True)
class RenderOutcome:
    """Result of driving one URL through the worker; never persisted."""

    url: str
    label: str = "undefined"
    skipped: bool = False
    elapsed: float = 0.0
    error: Optional[BaseException] = None
    reason: str = ""

    @property
    def passed(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RunCounters:
    """Pass counters for one pipeline run.

    Only the orchestrator calls :meth:`record`, and it does so synchronously on
    the event loop, so concurrent workers never interleave an update.
    """

    total: int = 0
    passed: int = 0
    skipped: int = 0
    updated: int = 0
    failed: int = 0
    elapsed: float = 0.0
    failed_urls: list[str] = field(default_factory=list)

    def record(self, outcome: RenderOutcome) -> None:
        self.elapsed += outcome.elapsed
        if not outcome.passed:
            self.failed += 1
            self.failed_urls.append(outcome.url)
            return
        self.passed += 1
        if outcome.skipped:
            self.skipped += 1
        else:
            self.updated += 1
