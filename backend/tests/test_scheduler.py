"""
Unit Tests for the Polling Scheduler
====================================

Tests for per-feed isolation, the sync flag, cooperative shutdown and the
optional bounded fan-out.
"""

import asyncio
from types import SimpleNamespace

import pytest

from conftest import FEED_URL, SAMPLE_RSS_FEED, TRUNCATED_RSS_FEED
from feedreader.services.ingestion import IngestionResult
from feedreader.services.scheduler import PollingScheduler, SchedulerState

OTHER_URL = "https://example.org/rss"


class FakeStore:
    def __init__(self, feeds):
        self.feeds = feeds
        self.list_calls = []

    async def list_feeds(self, sync_only=False):
        self.list_calls.append(sync_only)
        return list(self.feeds)


class RecordingWorker:
    """Worker double that records calls and can fail on chosen feeds"""

    def __init__(self, failing_ids=(), delay=0.0, on_ingest=None):
        self.failing_ids = set(failing_ids)
        self.delay = delay
        self.on_ingest = on_ingest
        self.ingested = []
        self.active = 0
        self.peak = 0

    async def ingest(self, feed, parsed=None):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.ingested.append(feed.id)
            if self.on_ingest is not None:
                self.on_ingest(feed)
            if feed.id in self.failing_ids:
                raise RuntimeError(f"worker blew up on feed {feed.id}")
            return IngestionResult(feed_id=feed.id, created=1)
        finally:
            self.active -= 1


def make_feeds(count):
    return [
        SimpleNamespace(id=n, title=f"Feed {n}", url=f"https://example.com/{n}.xml",
                        fetch_url=f"https://example.com/{n}.xml")
        for n in range(1, count + 1)
    ]


class TestRunCycle:
    """Test cases for a single ingestion cycle."""

    @pytest.mark.asyncio
    async def test_failing_feed_does_not_block_others(self, store, worker_factory):
        bad = await store.create_feed(url=FEED_URL, title="Broken")
        good = await store.create_feed(url=OTHER_URL, title="Working")
        worker = worker_factory({FEED_URL: 500, OTHER_URL: SAMPLE_RSS_FEED})
        scheduler = PollingScheduler(store, worker, interval_minutes=5, fetch_gap_seconds=0)

        report = await scheduler.run_cycle()

        assert report.feeds_processed == 2
        assert report.feeds_failed == 1
        assert report.articles_created == 2
        assert await store.count_articles(bad.id) == 0
        assert await store.count_articles(good.id) == 2

    @pytest.mark.asyncio
    async def test_invalid_document_does_not_stop_cycle(self, store, worker_factory):
        await store.create_feed(url=FEED_URL, title="Truncated")
        good = await store.create_feed(url=OTHER_URL, title="Working")
        worker = worker_factory({FEED_URL: TRUNCATED_RSS_FEED, OTHER_URL: SAMPLE_RSS_FEED})
        scheduler = PollingScheduler(store, worker, interval_minutes=5, fetch_gap_seconds=0)

        report = await scheduler.run_cycle()

        assert report.feeds_failed == 1
        assert await store.count_articles(good.id) == 2
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_worker_exception_is_contained(self):
        worker = RecordingWorker(failing_ids={1})
        scheduler = PollingScheduler(FakeStore(make_feeds(3)), worker, interval_minutes=5, fetch_gap_seconds=0)

        report = await scheduler.run_cycle()

        assert worker.ingested == [1, 2, 3]
        assert report.feeds_failed == 1
        assert report.articles_created == 2

    @pytest.mark.asyncio
    async def test_only_synced_feeds_are_polled(self, store, worker_factory):
        await store.create_feed(url=FEED_URL, title="Paused", sync=False)
        active = await store.create_feed(url=OTHER_URL, title="Active")
        worker = worker_factory({FEED_URL: SAMPLE_RSS_FEED, OTHER_URL: SAMPLE_RSS_FEED})
        scheduler = PollingScheduler(store, worker, interval_minutes=5, fetch_gap_seconds=0)

        report = await scheduler.run_cycle()

        assert report.feeds_total == 1
        assert await store.count_articles() == await store.count_articles(active.id) == 2

    @pytest.mark.asyncio
    async def test_feed_list_failure_is_logged_not_raised(self):
        class BrokenStore:
            async def list_feeds(self, sync_only=False):
                raise RuntimeError("database unavailable")

        worker = RecordingWorker()
        scheduler = PollingScheduler(BrokenStore(), worker, interval_minutes=5, fetch_gap_seconds=0)

        report = await scheduler.run_cycle()

        assert report.feeds_total == 0
        assert worker.ingested == []
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_cycle_reads_feed_list_fresh(self):
        store = FakeStore(make_feeds(1))
        worker = RecordingWorker()
        scheduler = PollingScheduler(store, worker, interval_minutes=5, fetch_gap_seconds=0)

        await scheduler.run_cycle()
        store.feeds = make_feeds(2)
        await scheduler.run_cycle()

        assert worker.ingested == [1, 1, 2]
        assert store.list_calls == [True, True]

    @pytest.mark.asyncio
    async def test_stop_observed_during_gap(self):
        worker = RecordingWorker()
        scheduler = PollingScheduler(FakeStore(make_feeds(3)), worker, interval_minutes=5, fetch_gap_seconds=30)
        worker.on_ingest = lambda feed: scheduler.shutdown()

        report = await asyncio.wait_for(scheduler.run_cycle(), timeout=5)

        assert worker.ingested == [1]
        assert report.cancelled
        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_concurrent_mode_respects_limit(self):
        worker = RecordingWorker(delay=0.05)
        scheduler = PollingScheduler(
            FakeStore(make_feeds(6)), worker, interval_minutes=5, fetch_gap_seconds=0, max_concurrent_feeds=2
        )

        report = await scheduler.run_cycle()

        assert sorted(worker.ingested) == [1, 2, 3, 4, 5, 6]
        assert report.articles_created == 6
        assert 1 < worker.peak <= 2

    @pytest.mark.asyncio
    async def test_concurrent_mode_isolates_failures(self):
        worker = RecordingWorker(failing_ids={2, 4})
        scheduler = PollingScheduler(
            FakeStore(make_feeds(5)), worker, interval_minutes=5, fetch_gap_seconds=0, max_concurrent_feeds=3
        )

        report = await scheduler.run_cycle()

        assert report.feeds_processed == 5
        assert report.feeds_failed == 2


class TestSchedulerLifecycle:
    """Test cases for start and shutdown."""

    @pytest.mark.asyncio
    async def test_start_runs_first_cycle_immediately(self):
        worker = RecordingWorker()
        scheduler = PollingScheduler(FakeStore(make_feeds(2)), worker, interval_minutes=60, fetch_gap_seconds=0)

        scheduler.start()
        try:
            for _ in range(100):
                if scheduler.last_report is not None:
                    break
                await asyncio.sleep(0.02)
        finally:
            scheduler.shutdown()
            await scheduler.wait_stopped(timeout=5)

        assert worker.ingested == [1, 2]
        assert scheduler.last_report.feeds_processed == 2

    @pytest.mark.asyncio
    async def test_shutdown_prevents_new_cycles(self):
        worker = RecordingWorker()
        scheduler = PollingScheduler(FakeStore(make_feeds(2)), worker, interval_minutes=5, fetch_gap_seconds=0)

        scheduler.shutdown()
        report = await scheduler.run_cycle()
        scheduler.start()

        assert scheduler.state == SchedulerState.STOPPED
        assert report.cancelled
        assert worker.ingested == []
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self):
        scheduler = PollingScheduler(FakeStore([]), RecordingWorker(), interval_minutes=5)

        scheduler.start()
        scheduler.shutdown()
        scheduler.shutdown()
        await scheduler.wait_stopped(timeout=1)

        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_wait_stopped_lets_cycle_finish_current_feed(self):
        worker = RecordingWorker(delay=0.1)
        scheduler = PollingScheduler(FakeStore(make_feeds(3)), worker, interval_minutes=60, fetch_gap_seconds=0)

        scheduler.start()
        for _ in range(100):
            if worker.active:
                break
            await asyncio.sleep(0.01)
        scheduler.shutdown()
        await scheduler.wait_stopped(timeout=5)

        # The feed in flight completes; no further feed is started
        assert worker.ingested == [1]
        assert worker.active == 0
