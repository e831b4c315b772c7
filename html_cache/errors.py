"""html_cache.errors: иерархия исключений HtmlCache."""

from __future__ import annotations

__all__ = [
    "HtmlCacheError",
    "ConfigurationError",
    "SitemapError",
    "RenderError",
    "PageNotFoundError",
    "CacheWriteError",
    "SessionUnavailableError",
    "CorruptRecordError",
    "DiagnosticsError",
    "RunInterrupted",
]


class HtmlCacheError(Exception):
    """Base class for all project errors."""


class ConfigurationError(HtmlCacheError):
    """Run cannot start: bad config, unknown storage driver or unreachable backend."""


class SitemapError(HtmlCacheError):
    """Sitemap could not be fetched or parsed."""


class RenderError(HtmlCacheError):
    """Per-URL failure; the run continues."""


class PageNotFoundError(RenderError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Page not found: {url}")
        self.url = url


class CacheWriteError(RenderError):
    def __init__(self, url_hash: str) -> None:
        super().__init__(f"Cache store did not acknowledge write for {url_hash}")
        self.url_hash = url_hash


class DiagnosticsError(HtmlCacheError):
    """Failure screenshot could not be captured."""


class RunInterrupted(HtmlCacheError):
    """Run stopped by SIGINT/SIGTERM after resources were released."""


class SessionUnavailableError(RenderError):
    """Every browser session was lost and none could be reopened."""


class CorruptRecordError(RenderError):
    """Stored record lacks required fields."""

    def __init__(self, url_hash: str, missing) -> None:
        super().__init__(f"Cache record {url_hash} has missing or invalid fields: {', '.join(sorted(missing))}")
        self.url_hash = url_hash
        self.missing = frozenset(missing)
