import asyncio
import logging
import signal
from typing import Optional

from feedreader.core.config import Settings, settings as default_settings
from feedreader.core.database import Database
from feedreader.services.article_store import ArticleStore
from feedreader.services.feed_parser import FeedParser
from feedreader.services.fetcher import Fetcher
from feedreader.services.ingestion import FeedIngestionWorker
from feedreader.services.sanitizer import ContentSanitizer
from feedreader.services.scheduler import PollingScheduler

logger = logging.getLogger(__name__)


class LifecycleController:
    """
    Builds the pipeline at process start and tears it down on shutdown.

    The database, store, fetcher and worker live exactly as long as the
    controller; stopping signals the scheduler, lets any in-flight cycle
    observe the signal, then closes the HTTP client and the connection pool.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        database: Optional[Database] = None,
        fetcher: Optional[Fetcher] = None,
        start_scheduler: bool = True,
    ):
        self.config = config or default_settings
        self.database = database or Database(self.config.DATABASE_URL)
        self.fetcher = fetcher or Fetcher(
            timeout=self.config.FETCH_TIMEOUT_SECONDS,
            user_agent=self.config.FETCH_USER_AGENT,
        )
        self.start_scheduler = start_scheduler
        self.store: Optional[ArticleStore] = None
        self.worker: Optional[FeedIngestionWorker] = None
        self.scheduler: Optional[PollingScheduler] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def start(self):
        self.database.connect()
        if self.config.CREATE_TABLES_ON_STARTUP:
            await self.database.create_all()

        self.store = ArticleStore(self.database, proxy_url=self.config.FULLTEXT_PROXY_URL)
        self.worker = FeedIngestionWorker(
            store=self.store,
            fetcher=self.fetcher,
            parser=FeedParser(),
            sanitizer=ContentSanitizer(),
        )
        self.scheduler = PollingScheduler(
            store=self.store,
            worker=self.worker,
            interval_minutes=self.config.POLL_INTERVAL_MINUTES,
            fetch_gap_seconds=self.config.FEED_FETCH_GAP_SECONDS,
            max_concurrent_feeds=self.config.MAX_CONCURRENT_FEEDS,
        )
        if self.start_scheduler:
            self.scheduler.start()
        logger.info("Feed ingestion pipeline started")

    async def stop(self):
        if self.scheduler is not None:
            self.scheduler.shutdown()
            await self.scheduler.wait_stopped(timeout=self.config.FETCH_TIMEOUT_SECONDS + 5)
        await self.fetcher.aclose()
        await self.database.dispose()
        logger.info("Feed ingestion pipeline stopped")

    def request_stop(self):
        """Signal handler target: wake run_until_signalled()"""
        logger.info("Shutting down...")
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_until_signalled(self):
        """Run the pipeline until SIGINT or SIGTERM arrives"""
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)

        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await self.stop()
