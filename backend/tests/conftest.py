"""
PyTest Configuration and Fixtures
=================================

Shared fixtures for the feed reader tests.

Storage runs on an in-memory SQLite database (aiosqlite) and the network is
replaced by an httpx.MockTransport, so no test leaves the process.
"""

import os

# Set test environment variables before any feedreader imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FULLTEXT_PROXY_URL", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest

from feedreader.core.database import Database
from feedreader.services.article_store import ArticleStore
from feedreader.services.fetcher import Fetcher
from feedreader.services.ingestion import FeedIngestionWorker

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FEED_URL = "https://example.com/feed.xml"

# Two-item channel used across the ingestion tests
SAMPLE_RSS_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Example Feed</title>
        <link>https://example.com</link>
        <description>Feed used for testing</description>
        <item>
            <title>First Article</title>
            <link>https://example.com/articles/1</link>
            <guid>article-1</guid>
            <description>&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;&lt;script&gt;alert(1)&lt;/script&gt;</description>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
        </item>
        <item>
            <title>Second Article</title>
            <link>https://example.com/articles/2</link>
            <guid>article-2</guid>
            <description>Plain text body</description>
            <pubDate>Wed, 04 Sep 2024 15:30:00 GMT</pubDate>
        </item>
    </channel>
</rss>"""

TRUNCATED_RSS_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Broken Feed</title>
        <item>
            <title>Cut off</title>
            <link>https://example.com/articles/cut"""


def mock_fetcher(routes: dict) -> Fetcher:
    """
    Build a Fetcher answering from routes.

    Values are bytes (200 with that body), an int (empty response with that
    status) or an exception class raised as a transport failure. Unknown
    URLs answer 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        answer = routes.get(str(request.url), 404)
        if isinstance(answer, type) and issubclass(answer, Exception):
            raise answer("connection refused", request=request)
        if isinstance(answer, int):
            return httpx.Response(answer, request=request)
        return httpx.Response(200, content=answer, request=request)

    return Fetcher(timeout=5, user_agent="feedreader-tests", transport=httpx.MockTransport(handler))


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def database():
    """Fresh in-memory database with all tables created"""
    db = Database(TEST_DATABASE_URL, echo=False).connect()
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def store(database):
    """Store that fetches origin URLs directly (no full-text proxy)"""
    return ArticleStore(database, proxy_url="")


@pytest.fixture
async def feed(store):
    """A registered feed pointing at FEED_URL"""
    return await store.create_feed(url=FEED_URL, title="Example Feed")


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS_FEED


@pytest.fixture
async def fetcher_factory():
    """Create mock fetchers and close them after the test"""
    created = []

    def factory(routes: dict) -> Fetcher:
        fetcher = mock_fetcher(routes)
        created.append(fetcher)
        return fetcher

    yield factory

    for fetcher in created:
        await fetcher.aclose()


@pytest.fixture
def worker_factory(store, fetcher_factory):
    """Build an ingestion worker over the test store and a mock network"""

    def factory(routes: dict) -> FeedIngestionWorker:
        return FeedIngestionWorker(store=store, fetcher=fetcher_factory(routes))

    return factory
