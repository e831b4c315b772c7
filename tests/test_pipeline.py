# File: tests/test_pipeline.py
import asyncio
from datetime import datetime

import pytest

from conftest import FakeDriver, FakePage
from html_cache.errors import SessionUnavailableError
from html_cache.renderer.models import RenderOutcome, UrlEntry
from html_cache.renderer.pipeline import Pipeline
from html_cache.renderer.pool import resolve_max_workers
from html_cache.renderer.worker import RenderWorker
from html_cache.staleness import url_hash

T = datetime(2024, 1, 1)


def entries_for(*uris):
    return [UrlEntry(uri=u, last_modified=T) for u in uris]


class RecordingWorker(RenderWorker):
    """Wraps the real worker and tracks concurrency through the pool."""

    def __init__(self, store, config, delay=0.01):
        super().__init__(store, config)
        self.delay = delay
        self.pipeline = None
        self.order = []
        self.peak_leased = 0
        self.active = 0
        self.peak_active = 0

    async def render(self, entry, label, session):
        self.order.append(entry.uri)
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        self.peak_leased = max(self.peak_leased, self.pipeline.pool.leased)
        try:
            await asyncio.sleep(self.delay)
            return await super().render(entry, label, session)
        finally:
            self.active -= 1


@pytest.mark.asyncio()
async def test_end_to_end_single_url(app_config, memory_store):
    driver = FakeDriver({"https://x/a": FakePage()})
    pipeline = Pipeline(entries_for("https://x/a"), memory_store, driver, app_config)

    counters = await pipeline.run()

    assert (counters.passed, counters.total) == (1, 1)
    assert await memory_store.find_by_hash(url_hash("https://x/a")) is not None


@pytest.mark.asyncio()
async def test_sequential_mode_reuses_one_session(app_config, memory_store):
    uris = ["https://x/a", "https://x/b", "https://x/c"]
    driver = FakeDriver({u: FakePage() for u in uris})

    await Pipeline(entries_for(*uris), memory_store, driver, app_config).run()

    assert len(driver.sessions) == 1
    assert [n.split("?")[0] for n in driver.sessions[0].navigations] == uris
    assert driver.sessions[0].closed


@pytest.mark.asyncio()
async def test_failure_does_not_stop_the_batch(app_config, memory_store):
    driver = FakeDriver({"https://x/a": FakePage(), "https://x/c": FakePage()})
    pipeline = Pipeline(entries_for("https://x/a", "https://x/missing", "https://x/c"), memory_store, driver, app_config)

    counters = await pipeline.run()

    assert counters.total == 3
    assert counters.passed == 2
    assert counters.failed_urls == ["https://x/missing"]
    assert len(memory_store) == 2


@pytest.mark.asyncio()
async def test_escalated_diagnostics_error_is_counted_and_run_continues(app_config, memory_store):
    driver = FakeDriver({"https://x/b": FakePage()}, screenshot_fails=True)
    pipeline = Pipeline(entries_for("https://x/a", "https://x/b"), memory_store, driver, app_config)

    counters = await pipeline.run()

    assert counters.total == 2
    assert counters.passed == 1
    assert pipeline.outcomes[0].error is not None


@pytest.mark.asyncio()
async def test_second_run_skips_everything(app_config, memory_store):
    uris = ["https://x/a", "https://x/b"]
    driver = FakeDriver({u: FakePage() for u in uris})
    await Pipeline(entries_for(*uris), memory_store, driver, app_config).run()

    second = Pipeline(entries_for(*uris), memory_store, FakeDriver({}), app_config)
    counters = await second.run()

    assert counters.passed == 2
    assert counters.skipped == 2
    assert all(o.reason == "skip-not-modified" for o in second.outcomes)


@pytest.mark.asyncio()
async def test_parallel_mode_respects_worker_bound(app_config, memory_store):
    config = app_config.model_copy(update={"multithread": True, "max_workers": 3})
    uris = [f"https://x/p{i}" for i in range(12)]
    driver = FakeDriver({u: FakePage() for u in uris})
    worker = RecordingWorker(memory_store, config)
    pipeline = Pipeline(entries_for(*uris), memory_store, driver, config, worker=worker)
    worker.pipeline = pipeline

    counters = await pipeline.run()

    expected_workers = resolve_max_workers(3)
    assert pipeline.max_workers == expected_workers
    assert len(driver.sessions) == 2 * expected_workers
    assert worker.peak_active <= expected_workers
    assert worker.peak_leased <= expected_workers
    assert (counters.passed, counters.total) == (12, 12)
    assert sorted(worker.order) == sorted(uris)
    assert all(s.closed for s in driver.sessions)
    assert pipeline.pool.leased == 0


@pytest.mark.asyncio()
async def test_parallel_failures_are_isolated(app_config, memory_store):
    config = app_config.model_copy(update={"multithread": True, "max_workers": 2})
    uris = [f"https://x/p{i}" for i in range(6)]
    pages = {u: FakePage() for u in uris if not u.endswith(("1", "4"))}
    driver = FakeDriver(pages)

    counters = await Pipeline(entries_for(*uris), memory_store, driver, config).run()

    assert counters.total == 6
    assert counters.passed == 4
    assert sorted(counters.failed_urls) == ["https://x/p1", "https://x/p4"]


@pytest.mark.asyncio()
async def test_grouped_mode_processes_buckets_in_order(app_config, memory_store):
    uris = ["https://x/blog/1", "https://x/product/2", "https://x/about", "https://x/blog/3"]
    driver = FakeDriver({u: FakePage() for u in uris})
    worker = RecordingWorker(memory_store, app_config, delay=0)
    pipeline = Pipeline(entries_for(*uris), memory_store, driver, app_config, worker=worker)
    worker.pipeline = pipeline

    counters = await pipeline.run(grouped=True)

    assert pipeline.groups == {"undefined": 1, "blog": 2, "product": 1}
    assert worker.order == ["https://x/about", "https://x/blog/1", "https://x/blog/3", "https://x/product/2"]
    labels = {o.url: o.label for o in pipeline.outcomes}
    assert labels["https://x/blog/3"] == "blog"
    assert counters.passed == counters.total == 4


@pytest.mark.asyncio()
async def test_grouped_mode_skips_empty_buckets(app_config, memory_store):
    driver = FakeDriver({"https://x/blog/1": FakePage()})
    pipeline = Pipeline(entries_for("https://x/blog/1"), memory_store, driver, app_config)

    counters = await pipeline.run(grouped=True)

    assert pipeline.groups == {"undefined": 0, "blog": 1, "product": 0}
    assert counters.passed == 1


@pytest.mark.asyncio()
async def test_cancellation_drains_pool(app_config, memory_store):
    config = app_config.model_copy(update={"multithread": True, "max_workers": 2})
    uris = [f"https://x/slow{i}" for i in range(4)]
    driver = FakeDriver({u: FakePage(delay=5) for u in uris})
    pipeline = Pipeline(entries_for(*uris), memory_store, driver, config)

    task = asyncio.create_task(pipeline.run())
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert driver.sessions
    assert all(s.closed for s in driver.sessions)
    assert len(memory_store) == 0


@pytest.mark.asyncio()
async def test_lost_browser_sessions_fail_remaining_urls_in_parallel_mode(app_config, memory_store):
    config = app_config.model_copy(update={"multithread": True, "max_workers": 1})
    uris = [f"https://x/p{i}" for i in range(4)]
    driver = FakeDriver({u: FakePage() for u in uris}, reset_fails=True, max_sessions=2)
    pipeline = Pipeline(entries_for(*uris), memory_store, driver, config)

    counters = await pipeline.run()

    assert [o.url for o in pipeline.outcomes] == uris
    assert (counters.total, counters.passed) == (4, 2)
    assert counters.failed_urls == ["https://x/p2", "https://x/p3"]
    assert all(isinstance(o.error, SessionUnavailableError) for o in pipeline.outcomes[2:])


@pytest.mark.asyncio()
async def test_lost_browser_session_fails_later_groups(app_config, memory_store):
    uris = ["https://x/blog/1", "https://x/product/2"]
    driver = FakeDriver({u: FakePage() for u in uris}, reset_fails=True, max_sessions=1)
    pipeline = Pipeline(entries_for(*uris), memory_store, driver, app_config)

    counters = await pipeline.run(grouped=True)

    assert counters.passed == 1
    assert counters.failed_urls == ["https://x/product/2"]
    assert pipeline.pool.size == 0


def test_outcome_passed_property():
    assert RenderOutcome(url="u").passed
    assert not RenderOutcome(url="u", error=RuntimeError("x")).passed
