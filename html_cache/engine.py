# File: html_cache/engine.py
"""html_cache.engine: Orchestration layer: хранилище, sitemap, браузер и прогон пайплайна."""

from __future__ import annotations

import asyncio
import signal
import time
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from html_cache.aggregator import RunReport, aggregate_results
from html_cache.config import AppConfig
from html_cache.errors import RunInterrupted
from html_cache.logger import logger
from html_cache.parser.sitemap_parser import fetch_sitemap
from html_cache.renderer.browser import BrowserDriver, BrowserSession
from html_cache.renderer.models import UrlEntry
from html_cache.renderer.pipeline import Pipeline
from html_cache.store import CacheStore, create_store
from html_cache.utils import format_elapsed

__all__ = ["Engine", "run_pipeline"]


class Driver(Protocol):
    async def start(self) -> None: ...
    async def open_session(self) -> BrowserSession: ...
    async def close(self) -> None: ...


class Engine:
    """Фасад для CLI и тестов: один прогон кэширования по заданной конфигурации."""

    def __init__(
        self,
        config: AppConfig,
        *,
        store: Optional[CacheStore] = None,
        driver: Optional[Driver] = None,
        entries: Optional[Sequence[UrlEntry]] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.driver = driver
        self.entries = list(entries) if entries is not None else None

    async def load_urls(self) -> List[UrlEntry]:
        if self.entries is not None:
            return self.entries
        started = time.monotonic()
        logger.info("Loading sitemap...")
        entries = await fetch_sitemap(self.config.base_uri, timeout=self.config.timeout / 1000)
        logger.info(
            "Sitemap loaded successfully (%s). Urls count: %d",
            format_elapsed(time.monotonic() - started), len(entries),
        )
        return entries

    async def run(self) -> RunReport:
        """
        Выполняет прогон. Ошибки конфигурации (неизвестный драйвер БД,
        недоступное хранилище) поднимаются до обработки первого URL.
        """
        started_at = datetime.now()
        started = time.monotonic()

        store = self.store or create_store(self.config.db_driver, self.config.db)
        async with store:
            entries = await self.load_urls()

            driver = self.driver or BrowserDriver(self.config.browser)
            logger.info("Start browser process...")
            await driver.start()
            try:
                logger.info("Start rendering...")
                pipeline = Pipeline(entries, store, driver, self.config)
                counters = await pipeline.run()
            finally:
                await driver.close()

        report = aggregate_results(
            counters,
            pipeline.outcomes,
            groups=pipeline.groups,
            started_at=started_at,
            wall_time=time.monotonic() - started,
        )
        logger.info(
            "Render successfully finished (%s). %s",
            format_elapsed(report.wall_time), report.summary(),
        )
        return report


def run_pipeline(config: AppConfig, **engine_kwargs) -> RunReport:
    """
    Синхронная точка входа: запускает Engine в новом event loop.

    SIGINT/SIGTERM отменяют прогон; сессии браузера и соединения закрываются,
    уже сохранённые рендеры остаются. В этом случае поднимается RunInterrupted.
    """
    engine = Engine(config, **engine_kwargs)

    async def _main() -> RunReport:
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        installed = []

        def _interrupt() -> None:
            logger.warning("Task interrupted. Exit.")
            if task is not None:
                task.cancel()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _interrupt)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("Signal handler for %s not supported here", sig)
            else:
                installed.append(sig)
        try:
            return await engine.run()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    try:
        return asyncio.run(_main())
    except asyncio.CancelledError as exc:
        raise RunInterrupted("Rendering interrupted") from exc
