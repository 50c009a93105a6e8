from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
import logging

from feedreader.api.deps import get_store, get_worker
from feedreader.core.config import settings
from feedreader.core.exceptions import DuplicateFeedError, FetchError, ParseError, ValidationError
from feedreader.schemas import (
    ArticleResponse,
    FeedCreateResponse,
    FeedSourceCreate,
    FeedSourceResponse,
    FeedSourceUpdate,
    FeedStatsResponse,
    IngestionSummary,
)
from feedreader.services.article_store import ArticleStore
from feedreader.services.ingestion import FeedIngestionWorker, IngestionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Feeds"])


@router.post(
    "/feeds",
    response_model=FeedCreateResponse,
    status_code=201,
    summary="Register Feed",
    description="""
Register a new feed and immediately ingest its current entries.

The channel is fetched once to read its title and description, and the same
document is then stored, so registration costs a single network request.

If the channel cannot be fetched or parsed the feed is still registered,
titled by its URL. The `ingestion` block of the response carries the error
and the scheduler retries on its next cycle.
    """,
    responses={
        409: {
            "description": "Conflict - A feed with this URL already exists",
            "content": {
                "application/json": {
                    "example": {"detail": "Feed already exists: https://hnrss.org/frontpage"}
                }
            }
        },
        422: {"description": "Unprocessable - Empty URL or unknown category_id"},
    },
)
async def create_feed(
    source: FeedSourceCreate,
    store: ArticleStore = Depends(get_store),
    worker: FeedIngestionWorker = Depends(get_worker),
):
    url = source.url.strip()
    if not url:
        raise ValidationError("URL cannot be empty")

    # Check before going to the network; the unique constraint still decides races
    if await store.get_feed_by_url(url) is not None:
        raise DuplicateFeedError(f"Feed already exists: {url}")
    await store.ensure_category(source.category_id)

    feed_size = source.feed_size or settings.DEFAULT_FEED_SIZE
    parsed = None
    fetch_error = None
    try:
        parsed = await worker.fetch_channel(store.fetch_url_for(url, feed_size))
    except (FetchError, ParseError) as e:
        logger.warning(f"Could not read channel for new feed {url}: {e}")
        fetch_error = e

    title = source.title or (parsed.channel.title if parsed else None) or url
    description = parsed.channel.description if parsed else None

    feed = await store.create_feed(
        url=url,
        title=title,
        description=description,
        feed_size=feed_size,
        sync=source.sync,
        category_id=source.category_id,
    )

    if parsed is not None:
        result = await worker.trigger_ingestion(feed, parsed=parsed)
    else:
        result = IngestionResult(feed_id=feed.id, error=fetch_error)

    return FeedCreateResponse(
        message="Feed registered" if result.ok else "Feed registered, initial ingestion failed",
        feed=FeedSourceResponse.model_validate(feed),
        ingestion=IngestionSummary(
            created=result.created,
            existing=result.existing,
            failed_items=result.failed_items,
            error=result.error_message,
        ),
    )


@router.get(
    "/feeds",
    response_model=List[FeedSourceResponse],
    summary="List Feeds",
    description="Get all registered feeds ordered by ID.",
)
async def list_feeds(store: ArticleStore = Depends(get_store)):
    return await store.list_feeds()


@router.get(
    "/feeds/{feed_id}",
    response_model=FeedSourceResponse,
    summary="Get Feed",
)
async def get_feed(feed_id: int, store: ArticleStore = Depends(get_store)):
    return await store.get_feed(feed_id)


@router.patch(
    "/feeds/{feed_id}",
    response_model=FeedSourceResponse,
    summary="Update Feed",
    description="""
Update a feed's polling settings. Only the fields present in the body change.

**Updatable fields:**
- `url`: New origin URL (must stay unique)
- `feed_size`: Number of items requested from the full-text service
- `sync`: Whether the scheduler polls this feed
- `category_id`: Category reference; send `null` to clear it

Changing `url` or `feed_size` recomputes the fetch URL used by the scheduler.
    """,
    responses={
        400: {
            "description": "Bad Request - No fields provided",
            "content": {
                "application/json": {
                    "example": {"detail": "At least one field must be provided for update"}
                }
            }
        },
        404: {"description": "Not Found - Feed does not exist"},
        409: {"description": "Conflict - Another feed already uses this URL"},
        422: {"description": "Unprocessable - Unknown category_id"},
    },
)
async def update_feed(
    feed_id: int,
    updates: FeedSourceUpdate,
    store: ArticleStore = Depends(get_store),
):
    changes = updates.changes()
    if not changes:
        raise HTTPException(
            status_code=400,
            detail="At least one field must be provided for update"
        )
    if "url" in changes and not changes["url"].strip():
        raise ValidationError("URL cannot be empty")

    return await store.update_feed(feed_id, updates)


@router.delete(
    "/feeds/{feed_id}",
    summary="Delete Feed",
    description="""
Delete a feed and all its articles.

**Warning:** This is a destructive operation that cannot be undone.
    """,
    responses={
        200: {
            "description": "Successfully deleted feed",
            "content": {
                "application/json": {
                    "example": {
                        "feed_id": 1,
                        "feed_title": "Hacker News",
                        "feed_url": "https://hnrss.org/frontpage",
                        "articles_deleted": 42,
                        "message": "Feed deleted successfully"
                    }
                }
            }
        },
        404: {"description": "Not Found - Feed does not exist"},
    },
)
async def delete_feed(feed_id: int, store: ArticleStore = Depends(get_store)):
    result = await store.delete_feed(feed_id)
    result["message"] = "Feed deleted successfully"
    return result


@router.get(
    "/feeds/{feed_id}/stats",
    response_model=FeedStatsResponse,
    summary="Feed Statistics",
    description="Count the stored articles of a feed by read state.",
)
async def get_feed_stats(feed_id: int, store: ArticleStore = Depends(get_store)):
    return await store.feed_stats(feed_id)


@router.get(
    "/feeds/{feed_id}/articles",
    response_model=List[ArticleResponse],
    summary="List Feed Articles",
)
async def list_feed_articles(
    feed_id: int,
    limit: int = Query(100, ge=1, le=500, description="Number of articles to return"),
    store: ArticleStore = Depends(get_store),
):
    """Newest articles of one feed first"""
    return await store.list_articles_by_feed(feed_id, limit=limit)
