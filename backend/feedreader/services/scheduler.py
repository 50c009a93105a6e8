import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from feedreader.core.config import settings
from feedreader.models import FeedSource
from feedreader.services.article_store import ArticleStore
from feedreader.services.ingestion import FeedIngestionWorker

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class CycleReport:
    feeds_total: int = 0
    feeds_processed: int = 0
    feeds_failed: int = 0
    articles_created: int = 0
    cancelled: bool = False


class PollingScheduler:
    """
    Polls every registered feed on a fixed interval.

    One cycle runs immediately on start, then one per timer firing. Each
    cycle reads the feed list once and hands every feed to the ingestion
    worker inside its own catch-and-log boundary, so one faulty feed never
    stops the cycle or the scheduler. Stopping is cooperative: it is observed
    between feeds and while waiting, never inside a fetch.
    """

    JOB_ID = "poll_feeds"

    def __init__(
        self,
        store: ArticleStore,
        worker: FeedIngestionWorker,
        interval_minutes: Optional[float] = None,
        fetch_gap_seconds: Optional[float] = None,
        max_concurrent_feeds: Optional[int] = None,
    ):
        self.store = store
        self.worker = worker
        self.interval_minutes = interval_minutes or settings.POLL_INTERVAL_MINUTES
        self.fetch_gap_seconds = (
            fetch_gap_seconds if fetch_gap_seconds is not None else settings.FEED_FETCH_GAP_SECONDS
        )
        self.max_concurrent_feeds = max(1, max_concurrent_feeds or settings.MAX_CONCURRENT_FEEDS)

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.last_report: Optional[CycleReport] = None
        self._state = SchedulerState.IDLE
        self._stop_event = asyncio.Event()
        self._cycle_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def start(self):
        """Arm the periodic timer; the first cycle runs right away"""
        if self.is_running:
            return
        if self.stopping:
            logger.warning("Scheduler was stopped and cannot be restarted")
            return

        self.scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self.scheduler.add_job(
            self._on_timer,
            'interval',
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(f"Feed scheduler started. Polling feeds every {self.interval_minutes} minutes")

    def shutdown(self):
        """Signal stop; no new cycle starts and an in-flight one winds down"""
        if self._state == SchedulerState.STOPPED:
            return

        self._stop_event.set()
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
        self._state = SchedulerState.STOPPED
        logger.info("Feed scheduler stopped")

    async def wait_stopped(self, timeout: Optional[float] = None) -> None:
        """Wait for an in-flight cycle to observe the stop signal"""
        task = self._cycle_task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Ingestion cycle still running after {timeout}s, cancelling it")
            task.cancel()

    async def _on_timer(self):
        if self.stopping:
            return
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.warning("Previous ingestion cycle still running, skipping this tick")
            return
        self._cycle_task = asyncio.create_task(self.run_cycle())

    async def run_cycle(self) -> CycleReport:
        """Run one full ingestion cycle over the current feed list"""
        report = CycleReport()
        if self.stopping:
            report.cancelled = True
            return report

        self._state = SchedulerState.RUNNING
        logger.info("Starting feed ingestion cycle")
        try:
            try:
                feeds = await self.store.list_feeds(sync_only=True)
            except Exception as e:
                logger.error(f"Error loading feeds for ingestion cycle: {e}", exc_info=True)
                return report

            report.feeds_total = len(feeds)
            logger.info(f"Found {len(feeds)} feeds to ingest")

            if self.max_concurrent_feeds == 1:
                await self._run_sequential(feeds, report)
            else:
                await self._run_concurrent(feeds, report)

            logger.info(
                f"Feed ingestion cycle {'cancelled' if report.cancelled else 'completed'}: "
                f"{report.feeds_processed}/{report.feeds_total} feeds, "
                f"{report.feeds_failed} failed, {report.articles_created} new articles"
            )
            self.last_report = report
            return report
        finally:
            if not self.stopping:
                self._state = SchedulerState.IDLE

    async def _run_sequential(self, feeds, report: CycleReport):
        for index, feed in enumerate(feeds):
            if self.stopping:
                report.cancelled = True
                break

            await self._ingest_feed(feed, index, report)

            if index < len(feeds) - 1 and self.fetch_gap_seconds > 0:
                logger.info(f"Waiting {self.fetch_gap_seconds} seconds before next feed...")
                if await self._wait_for_stop(self.fetch_gap_seconds):
                    report.cancelled = True
                    break

    async def _run_concurrent(self, feeds, report: CycleReport):
        semaphore = asyncio.Semaphore(self.max_concurrent_feeds)

        async def bounded(index, feed):
            async with semaphore:
                if self.stopping:
                    report.cancelled = True
                    return
                await self._ingest_feed(feed, index, report)

        await asyncio.gather(*(bounded(index, feed) for index, feed in enumerate(feeds)))

    async def _ingest_feed(self, feed: FeedSource, index: int, report: CycleReport):
        report.feeds_processed += 1
        try:
            logger.info(f"Ingesting feed {index + 1}/{report.feeds_total}: {feed.title} ({feed.fetch_url})")
            result = await self.worker.ingest(feed)
        except Exception as e:
            logger.error(f"Error ingesting feed {feed.title}: {e}", exc_info=True)
            report.feeds_failed += 1
            return

        if not result.ok:
            report.feeds_failed += 1
        report.articles_created += result.created

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep for timeout seconds; True if the stop signal arrived first"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False
