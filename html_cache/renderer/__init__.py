# html_cache/renderer/__init__.py
"""html_cache.renderer: рендер страниц через headless-браузер и оркестрация прогона."""

from html_cache.renderer.models import CacheRecord, RenderOutcome, RunCounters, UrlEntry

__all__ = ["CacheRecord", "RenderOutcome", "RunCounters", "UrlEntry"]
