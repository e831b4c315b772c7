# html_cache/renderer/pool.py
"""
Bounded pool of reusable browser sessions.
"""
from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol

from html_cache.errors import SessionUnavailableError
from html_cache.logger import logger
from html_cache.renderer.browser import BrowserSession

__all__ = ["SessionFactory", "SessionPool", "resolve_max_workers"]


class SessionFactory(Protocol):
    async def open_session(self) -> BrowserSession: ...


def resolve_max_workers(configured: int, available: Optional[int] = None) -> int:
    """Configured value if it lies in ``(0, available]``, otherwise *available*."""
    if available is None:
        available = os.cpu_count() or 1
    available = max(1, available)
    if 0 < configured <= available:
        return configured
    return available


class SessionPool:
    """
    Pre-warmed pool of sessions handed out through an asyncio.Queue.

    At most ``size`` sessions are leased at once; :meth:`acquire` waits when
    the queue is empty. Released sessions are reset to a blank page first.
    A session that cannot be reset is replaced; if the browser refuses a new
    one, the pool shrinks. Once it is empty, :meth:`acquire` raises
    :class:`SessionUnavailableError`.
    """

    def __init__(self, factory: SessionFactory, size: int) -> None:
        if size <= 0:
            raise ValueError("Pool size must be positive")
        self._factory = factory
        self._size = size
        # None marks a pool that lost its last session
        self._queue: asyncio.Queue[Optional[BrowserSession]] = asyncio.Queue()
        self._sessions: List[BrowserSession] = []
        self._leased = 0
        self._started = False
        self._drained = False

    @property
    def size(self) -> int:
        return self._size

    @property
    def leased(self) -> int:
        return self._leased

    async def start(self) -> None:
        if self._started:
            return
        for i in range(self._size):
            session = await self._factory.open_session()
            self._sessions.append(session)
            self._queue.put_nowait(session)
            logger.debug("Opened browser session %d/%d", i + 1, self._size)
        self._started = True

    async def acquire(self) -> BrowserSession:
        if self._drained:
            raise RuntimeError("Session pool already drained")
        if not self._started:
            await self.start()
        session = await self._queue.get()
        if session is None:
            # wake the next waiter too
            self._queue.put_nowait(None)
            raise SessionUnavailableError("No browser sessions left in the pool")
        self._leased += 1
        return session

    async def release(self, session: BrowserSession) -> None:
        self._leased -= 1
        if self._drained:
            await self._discard(session)
            return
        try:
            await session.reset()
        except Exception as exc:
            logger.warning("Browser session reset failed (%s), opening a new one", exc)
            await self._discard(session)
            try:
                session = await self._factory.open_session()
            except Exception as open_exc:
                self._shrink(open_exc)
                return
            self._sessions.append(session)
        self._queue.put_nowait(session)

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[BrowserSession]:
        session = await self.acquire()
        try:
            yield session
        finally:
            await self.release(session)

    async def drain(self) -> None:
        """Close every session opened by the pool. Safe to call twice."""
        if self._drained:
            return
        self._drained = True
        sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                await session.close()
            except Exception as exc:
                logger.warning("Failed to close browser session: %s", exc)
        logger.debug("Session pool drained (%d sessions)", len(sessions))

    def _shrink(self, exc: Exception) -> None:
        self._size -= 1
        logger.error("Could not open a replacement browser session (%s); pool size is now %d", exc, self._size)
        if self._size == 0:
            self._queue.put_nowait(None)

    async def _discard(self, session: BrowserSession) -> None:
        if session in self._sessions:
            self._sessions.remove(session)
        try:
            await session.close()
        except Exception as exc:
            logger.debug("Ignoring close error on broken session: %s", exc)
