import logging
from dataclasses import dataclass
from typing import Optional

from feedreader.core.exceptions import FetchError, ParseError, StoreError, UnexpectedFault
from feedreader.models import FeedSource
from feedreader.services.article_store import ArticleStore
from feedreader.services.feed_parser import FeedParser, ParsedFeed
from feedreader.services.fetcher import Fetcher
from feedreader.services.sanitizer import ContentSanitizer

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of ingesting one feed once"""
    feed_id: int
    created: int = 0
    existing: int = 0
    failed_items: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


class FeedIngestionWorker:
    """
    Runs fetch -> parse -> sanitize -> store for a single feed.

    ingest() never raises: a fetch or parse failure aborts the feed for this
    cycle, a store failure skips only the affected item, and anything else is
    wrapped in UnexpectedFault and reported in the result.
    """

    def __init__(
        self,
        store: ArticleStore,
        fetcher: Fetcher,
        parser: Optional[FeedParser] = None,
        sanitizer: Optional[ContentSanitizer] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.parser = parser or FeedParser()
        self.sanitizer = sanitizer or ContentSanitizer()

    async def fetch_channel(self, url: str) -> ParsedFeed:
        """
        Fetch and parse a feed without storing anything.

        Raises:
            FetchError, ParseError
        """
        payload = await self.fetcher.fetch(url)
        return self.parser.parse(payload, url=url)

    async def ingest(self, feed: FeedSource, parsed: Optional[ParsedFeed] = None) -> IngestionResult:
        """
        Ingest one feed.

        Args:
            feed: The feed source to ingest
            parsed: Optional document that was already fetched and parsed
        """
        result = IngestionResult(feed_id=feed.id)

        try:
            if parsed is None:
                parsed = await self.fetch_channel(feed.fetch_url)
        except (FetchError, ParseError) as e:
            logger.warning(f"Skipping feed {feed.id} ({feed.url}) this cycle: {e}")
            result.error = e
            return result
        except Exception as e:
            fault = UnexpectedFault(feed.id, e)
            logger.error(f"Error fetching feed {feed.id} ({feed.url}): {fault}", exc_info=True)
            result.error = fault
            return result

        try:
            for item in parsed.items:
                description = self.sanitizer.sanitize(item.description)
                try:
                    _, already_existed = await self.store.upsert_article(
                        feed_id=feed.id,
                        title=item.title,
                        link=item.link,
                        guid=item.guid,
                        description=description,
                        publish_date=item.publish_date,
                        format=item.format,
                        identifier=item.identifier,
                        read=False,
                    )
                except StoreError as e:
                    result.failed_items += 1
                    logger.error(f"Error saving article '{item.title}' for feed {feed.id}: {e}")
                    continue

                if already_existed:
                    result.existing += 1
                else:
                    result.created += 1
        except Exception as e:
            fault = UnexpectedFault(feed.id, e)
            logger.error(f"Error storing articles for feed {feed.id} ({feed.url}): {fault}", exc_info=True)
            result.error = fault
            return result

        logger.info(
            f"Stored {result.created} new articles from {feed.title} "
            f"({result.existing} already present, {result.failed_items} failed)"
        )
        return result

    async def trigger_ingestion(
        self, feed: FeedSource, parsed: Optional[ParsedFeed] = None
    ) -> IngestionResult:
        """
        Ingest a newly registered feed before its registration returns.

        Failures are contained exactly as in ingest(); the result carries the
        error so the caller can report it.
        """
        logger.info(f"Running initial ingestion for new feed: {feed.title}")
        result = await self.ingest(feed, parsed=parsed)
        if not result.ok:
            logger.warning(f"Initial ingestion failed for {feed.url}: {result.error_message}")
        return result
