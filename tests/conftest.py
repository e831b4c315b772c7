# File: tests/conftest.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from html_cache.config import AppConfig, PageTypeRule, RenderConfig
from html_cache.renderer.models import UrlEntry
from html_cache.store.memory import MemoryStore

PRERENDER_FLAGS = ("?is_prerender=1", "&is_prerender=1")


@dataclass
class FakePage:
    """Scripted behaviour of one URL inside FakeSession."""

    html: str = "<html><body>page</body></html>"
    status: int = 200
    fail_wait: bool = False
    delay: float = 0.0


class FakeSession:
    """In-memory stand-in for BrowserSession."""

    def __init__(
        self,
        pages: Dict[str, FakePage],
        *,
        screenshot_fails: bool = False,
        reset_fails: bool = False,
    ) -> None:
        self.pages = pages
        self.screenshot_fails = screenshot_fails
        self.reset_fails = reset_fails
        self.current: Optional[FakePage] = None
        self.navigations: List[str] = []
        self.waits: List[tuple[str, str]] = []
        self.screenshots: List[Path] = []
        self.resets = 0
        self.closed = False

    async def navigate(self, url: str, timeout_ms: int) -> int:
        self.navigations.append(url)
        uri = url
        for flag in PRERENDER_FLAGS:
            uri = uri.replace(flag, "")
        self.current = self.pages.get(uri)
        if self.current is None:
            return 404
        if self.current.delay:
            await asyncio.sleep(self.current.delay)
        return self.current.status

    async def content(self) -> str:
        return self.current.html if self.current else "<html></html>"

    async def wait_for_condition(self, expression: str, arg, timeout_ms: int) -> None:
        self.waits.append((expression, arg))
        if self.current is not None and self.current.fail_wait:
            raise TimeoutError(f"Timeout {timeout_ms}ms exceeded")

    async def evaluate(self, expression: str, arg=None):
        return {"opened": True, "loaded": False, "pageType": arg}

    async def screenshot(self, path) -> None:
        if self.screenshot_fails:
            raise OSError("disk full")
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(Path(path))

    async def reset(self) -> None:
        if self.reset_fails:
            raise RuntimeError("page crashed")
        self.current = None
        self.resets += 1

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Opens FakeSession objects sharing one page script.

    ``max_sessions`` simulates a browser that refuses new pages after a while.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, FakePage]] = None,
        *,
        max_sessions: Optional[int] = None,
        **session_kwargs,
    ) -> None:
        self.pages = pages if pages is not None else {}
        self.max_sessions = max_sessions
        self.session_kwargs = session_kwargs
        self.sessions: List[FakeSession] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def open_session(self) -> FakeSession:
        if self.max_sessions is not None and len(self.sessions) >= self.max_sessions:
            raise RuntimeError("browser gone")
        session = FakeSession(self.pages, **self.session_kwargs)
        self.sessions.append(session)
        return session

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def screenshots_dir(tmp_path) -> Path:
    return tmp_path / "pages"


@pytest.fixture()
def app_config(screenshots_dir) -> AppConfig:
    """Sequential config with two page-type rules and a memory store."""
    return AppConfig(
        base_uri="https://x",
        db_driver="memory",
        page_types=[
            PageTypeRule(type="blog", regex=r"/blog/.*"),
            PageTypeRule(type="product", regex=r"/product/\d+"),
        ],
        timeout=1000,
        render=RenderConfig(screenshots_dir=str(screenshots_dir)),
    )


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def lastmod() -> datetime:
    return datetime(2024, 1, 1)


@pytest.fixture()
def entry(lastmod) -> UrlEntry:
    return UrlEntry(uri="https://x/a", last_modified=lastmod)
