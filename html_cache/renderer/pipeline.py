# html_cache/renderer/pipeline.py
"""
Pipeline orchestrator: schedules URLs (optionally grouped by page type)
over a pool of browser sessions and aggregates the outcomes.
"""
from __future__ import annotations

import asyncio
import time
from typing import Dict, Iterable, List, Optional, Sequence

from html_cache.classifier import classify, group_urls
from html_cache.config import AppConfig
from html_cache.errors import SessionUnavailableError
from html_cache.logger import logger
from html_cache.renderer.models import RenderOutcome, RunCounters, UrlEntry
from html_cache.renderer.pool import SessionFactory, SessionPool, resolve_max_workers
from html_cache.renderer.worker import RenderWorker
from html_cache.store.base import CacheStore
from html_cache.utils import format_elapsed

__all__ = ["Pipeline"]


class Pipeline:
    """One caching run over a fixed URL list."""

    def __init__(
        self,
        entries: Iterable[UrlEntry],
        store: CacheStore,
        driver: SessionFactory,
        config: AppConfig,
        worker: Optional[RenderWorker] = None,
    ) -> None:
        self.entries: List[UrlEntry] = list(entries)
        self.config = config
        self.driver = driver
        self.worker = worker or RenderWorker(store, config)
        self.counters = RunCounters(total=len(self.entries))
        self.outcomes: List[RenderOutcome] = []
        self.groups: Dict[str, int] = {}
        self.parallel = config.multithread
        self.max_workers = resolve_max_workers(config.max_workers) if self.parallel else 1
        self._pool: Optional[SessionPool] = None

    @property
    def pool(self) -> Optional[SessionPool]:
        return self._pool

    async def run(self, grouped: Optional[bool] = None) -> RunCounters:
        """Process every URL once; the session pool is drained even on cancellation."""
        if grouped is None:
            grouped = self.config.group_urls
        pool_size = 2 * self.max_workers if self.parallel else 1
        self._pool = SessionPool(self.driver, pool_size)
        try:
            await self._pool.start()
            if grouped:
                await self._run_grouped()
            else:
                await self._run_batch(self.entries)
        finally:
            await self._pool.drain()
        return self.counters

    async def _run_grouped(self) -> None:
        groups = group_urls(self.entries, self.config.page_types)
        self.groups = {label: len(urls) for label, urls in groups.items()}

        logger.info(">> Detected url groups:")
        for label, urls in groups.items():
            logger.info(">>>> %s: %d urls", label, len(urls))

        logger.info(">> Start collect cache for urls by detected groups")
        for label, urls in groups.items():
            if not urls:
                continue
            logger.info(">> Collect cache for type `%s`:", label)
            await self._run_batch(urls)

    async def _run_batch(self, batch: Sequence[UrlEntry]) -> None:
        if not batch:
            return
        if self.parallel:
            await self._run_parallel(batch)
        else:
            await self._run_sequential(batch)

    async def _run_sequential(self, batch: Sequence[UrlEntry]) -> None:
        logger.info(">> Start iterating over url list in sequential mode")
        assert self._pool is not None
        try:
            session = await self._pool.acquire()
        except SessionUnavailableError as exc:
            for index, entry in enumerate(batch, 1):
                self._fail(entry, exc, index, len(batch))
            return
        try:
            for index, entry in enumerate(batch, 1):
                await self._process(entry, session, index, len(batch))
        finally:
            await self._pool.release(session)

    async def _run_parallel(self, batch: Sequence[UrlEntry]) -> None:
        assert self._pool is not None
        logger.info(
            ">> Start iterating over url list in parallel mode (%d workers, %d browser sessions)",
            self.max_workers, self._pool.size,
        )
        queue: asyncio.Queue[tuple[int, UrlEntry]] = asyncio.Queue()
        for item in enumerate(batch, 1):
            queue.put_nowait(item)

        workers = [
            asyncio.create_task(self._worker(queue, len(batch), n))
            for n in range(min(self.max_workers, len(batch)))
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, queue: asyncio.Queue[tuple[int, UrlEntry]], total: int, worker_id: int) -> None:
        assert self._pool is not None
        prefix = f"[w#{worker_id}]"
        while True:
            try:
                index, entry = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                session = await self._pool.acquire()
            except SessionUnavailableError as exc:
                self._fail(entry, exc, index, total, prefix)
                continue
            try:
                await self._process(entry, session, index, total, prefix)
            finally:
                await self._pool.release(session)

    async def _process(self, entry: UrlEntry, session, index: int, total: int, prefix: str = "") -> None:
        label = classify(entry.uri, self.config.page_types)
        logger.info(">> %s[%d of %d][%s] Process page %s...", prefix, index, total, label, entry.uri)

        started = time.monotonic()
        try:
            outcome = await self.worker.render(entry, label, session)
        except Exception as exc:
            logger.exception("%s[!] Error occured: %s", prefix, exc)
            outcome = RenderOutcome(
                url=entry.uri, label=label, error=exc, reason="failed",
                elapsed=time.monotonic() - started,
            )

        self._record(outcome)
        logger.info(
            ">>>> %s[%d of %d] Render end in %s / %s",
            prefix, index, total, format_elapsed(outcome.elapsed), format_elapsed(self.counters.elapsed),
        )

    def _fail(self, entry: UrlEntry, exc: Exception, index: int, total: int, prefix: str = "") -> None:
        """Count *entry* as failed without rendering it."""
        label = classify(entry.uri, self.config.page_types)
        logger.error(">> %s[%d of %d][%s] Skip page %s: %s", prefix, index, total, label, entry.uri, exc)
        self._record(RenderOutcome(url=entry.uri, label=label, error=exc, reason="failed"))

    def _record(self, outcome: RenderOutcome) -> None:
        self.outcomes.append(outcome)
        self.counters.record(outcome)
