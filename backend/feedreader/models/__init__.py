from .category import Category
from .feed_source import FeedSource
from .article import Article

__all__ = ["Category", "FeedSource", "Article"]
