from .feed_source import (
    FeedSourceCreate,
    FeedSourceUpdate,
    FeedSourceResponse,
    FeedStatsResponse,
    IngestionSummary,
    FeedCreateResponse,
)
from .article import ArticleResponse, ArticleReadUpdate

__all__ = [
    "FeedSourceCreate",
    "FeedSourceUpdate",
    "FeedSourceResponse",
    "FeedStatsResponse",
    "IngestionSummary",
    "FeedCreateResponse",
    "ArticleResponse",
    "ArticleReadUpdate",
]
