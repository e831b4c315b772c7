# html_cache/renderer/worker.py
"""
Render worker: drives one URL through navigation, readiness waiting,
extraction and the cache decision.
"""
from __future__ import annotations

import json
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from html_cache.config import AppConfig
from html_cache.errors import CacheWriteError, DiagnosticsError, PageNotFoundError
from html_cache.logger import logger
from html_cache.renderer.browser import BrowserSession
from html_cache.renderer.models import CacheRecord, RenderOutcome, UrlEntry
from html_cache.staleness import (
    Decision,
    build_record,
    content_hash,
    decide,
    normalize_html,
    url_hash,
)
from html_cache.store.base import CacheStore
from html_cache.utils import with_query_flag

__all__ = ["RenderWorker"]

_SKIP_MESSAGES = {
    Decision.SKIP_NOT_MODIFIED: "Render lastmod date not changed - SKIP",
    Decision.SKIP_UNCHANGED: "Render content hash not changed - SKIP",
}


class RenderWorker:
    """Renders URLs into a cache store. Stateless between calls."""

    def __init__(self, store: CacheStore, config: AppConfig) -> None:
        self.store = store
        self.config = config

    async def render(self, entry: UrlEntry, label: str, session: BrowserSession) -> RenderOutcome:
        """
        Render *entry* on *session* and update the cache if the page changed.

        Per-URL failures end up in ``outcome.error``. Only a failure to capture
        the diagnostics screenshot is raised (:class:`DiagnosticsError`).
        """
        started = time.monotonic()
        outcome = RenderOutcome(url=entry.uri, label=label)

        hashed = url_hash(entry.uri)
        logger.info(">>>> Page url hash: %s", hashed)

        existing = await self.store.find_by_hash(hashed)
        if existing is not None:
            logger.info(">>>> Found render data: #%s - %s", existing.id, existing.rendered_at)

        decision = decide(existing, entry)
        if decision.skipped:
            return self._skip(outcome, decision, started)

        try:
            decision = await self._render_and_store(entry, label, session, hashed, existing)
        except Exception as exc:
            outcome.error = exc
            outcome.reason = "failed"
            await self._capture_failure(session, label, hashed, exc)
        else:
            if decision is None:
                outcome.skipped = True
                outcome.reason = "noindex"
            elif decision.skipped:
                return self._skip(outcome, decision, started)
            else:
                outcome.reason = decision.value

        outcome.elapsed = time.monotonic() - started
        return outcome

    async def _render_and_store(
        self,
        entry: UrlEntry,
        label: str,
        session: BrowserSession,
        hashed: str,
        existing: Optional[CacheRecord],
    ) -> Optional[Decision]:
        render_cfg = self.config.render
        timeout = self.config.timeout

        status = await session.navigate(with_query_flag(entry.uri, render_cfg.prerender_param), timeout)
        if status == 404:
            raise PageNotFoundError(entry.uri)

        raw = await session.content()
        if render_cfg.noindex_marker and render_cfg.noindex_marker in raw:
            logger.info(">>>> NOINDEX meta attribute detected - SKIP")
            return None

        logger.debug(">>>> Wait for opened...")
        await session.wait_for_condition(render_cfg.opened_predicate, label, timeout)
        logger.debug(">>>> Wait for loaded...")
        await session.wait_for_condition(render_cfg.loaded_predicate, label, timeout)

        html = normalize_html(await session.content(), render_cfg.strip_patterns)
        content = html.encode("utf-8")
        fresh_hash = content_hash(content)
        logger.info(">>>> Computed content hash: %s", fresh_hash)

        decision = decide(existing, entry, fresh_hash)
        if decision.skipped:
            return decision

        record = build_record(existing, entry, content, fresh_hash, datetime.now())
        if not await self.store.save(record):
            raise CacheWriteError(hashed)
        logger.info(">>>> Render saved (%d bytes)", len(content))
        return decision

    async def _capture_failure(
        self, session: BrowserSession, label: str, hashed: str, exc: Exception
    ) -> None:
        logger.warning(">>>> Fail. Reason: %s", exc)

        try:
            state = await session.evaluate(self.config.render.state_predicate, label)
        except Exception as state_exc:
            logger.warning(">>>> State: unavailable (%s)", state_exc)
        else:
            logger.info(">>>> State: %s", json.dumps(state, indent=2, ensure_ascii=False, default=str))

        logger.info(">>>> Saving fail screen...")
        screens = Path(self.config.render.screenshots_dir)
        path = screens / f"fail-{hashed}.png"
        try:
            screens.mkdir(parents=True, exist_ok=True)
            await session.screenshot(path)
        except Exception as shot_exc:
            logger.error(">> Error occured while capturing screenshot")
            raise DiagnosticsError(f"Unable to save fail screen to {path}: {shot_exc}") from shot_exc
        logger.info(">>>> Fail screen saved to `%s`", path)

    @staticmethod
    def _skip(outcome: RenderOutcome, decision: Decision, started: float) -> RenderOutcome:
        logger.info(">>>> %s", _SKIP_MESSAGES[decision])
        outcome.skipped = True
        outcome.reason = decision.value
        outcome.elapsed = time.monotonic() - started
        return outcome
