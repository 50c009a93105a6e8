"""
Store for feed sources and articles.

Every public coroutine runs in its own session and transaction. The upsert
is the only path that creates articles and is safe under concurrent callers:
the (feed_id, link) unique constraint decides which writer wins and the loser
simply reports the existing row.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from feedreader.core.config import settings
from feedreader.core.database import Database
from feedreader.core.exceptions import (
    ArticleNotFoundError,
    DuplicateFeedError,
    FeedNotFoundError,
    StoreError,
    ValidationError,
)
from feedreader.models import Article, Category, FeedSource
from feedreader.schemas.feed_source import FeedSourceUpdate
from feedreader.services.feed_url import resolve_fetch_url

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _escape_like(text: str) -> str:
    """Make LIKE wildcards in user input match literally"""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ArticleStore:
    """Persistence operations used by the pipeline and the API"""

    def __init__(self, database: Database, proxy_url: Optional[str] = None):
        self.database = database
        self.proxy_url = proxy_url

    def fetch_url_for(self, url: str, feed_size: int) -> str:
        """Resolved fetch URL a feed with this origin and size hint would get"""
        return resolve_fetch_url(url, feed_size, proxy_url=self.proxy_url)

    # ------------------------------------------------------------------
    # Feed sources
    # ------------------------------------------------------------------

    async def list_feeds(self, sync_only: bool = False) -> List[FeedSource]:
        """Return the current feed set, read fresh on every call"""
        query = select(FeedSource).order_by(FeedSource.id)
        if sync_only:
            query = query.where(FeedSource.sync.is_(True))

        async with self.database.session() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def get_feed(self, feed_id: int) -> FeedSource:
        async with self.database.session() as db:
            feed = await db.get(FeedSource, feed_id)
            if feed is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")
            return feed

    async def get_feed_by_url(self, url: str) -> Optional[FeedSource]:
        async with self.database.session() as db:
            result = await db.execute(select(FeedSource).where(FeedSource.url == url))
            return result.scalar_one_or_none()

    async def ensure_category(self, category_id: Optional[int]) -> None:
        """
        Reject a reference to a category that does not exist.

        Raises:
            ValidationError: no category row with this id
        """
        if category_id is None:
            return
        async with self.database.session() as db:
            await self._check_category(db, category_id)

    @staticmethod
    async def _check_category(db, category_id: int) -> None:
        if await db.get(Category, category_id) is None:
            raise ValidationError(f"Category {category_id} does not exist")

    async def create_feed(
        self,
        url: str,
        title: str,
        description: Optional[str] = None,
        feed_size: Optional[int] = None,
        sync: bool = True,
        category_id: Optional[int] = None,
    ) -> FeedSource:
        """
        Register a new feed source.

        Raises:
            DuplicateFeedError: a feed with this origin URL already exists
            ValidationError: category_id does not reference a category
        """
        await self.ensure_category(category_id)
        feed_size = feed_size or settings.DEFAULT_FEED_SIZE
        feed = FeedSource(
            url=url,
            fetch_url=self.fetch_url_for(url, feed_size),
            title=title,
            description=description,
            feed_size=feed_size,
            sync=sync,
            category_id=category_id,
        )

        async with self.database.session() as db:
            db.add(feed)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if await self._feed_url_exists(db, url):
                    raise DuplicateFeedError(f"Feed already exists: {url}") from e
                raise StoreError(f"Failed to create feed {url}: {e.orig}") from e
            await db.refresh(feed)

        logger.info(f"Created feed {feed.id}: {feed.title} ({feed.url})")
        return feed

    @staticmethod
    async def _feed_url_exists(db, url: str) -> bool:
        result = await db.execute(select(FeedSource.id).where(FeedSource.url == url))
        return result.scalar_one_or_none() is not None

    async def update_feed(self, feed_id: int, updates: FeedSourceUpdate) -> FeedSource:
        """
        Apply a typed partial update.

        Changing url or feed_size recomputes the resolved fetch URL so the
        next cycle retrieves the new location.
        """
        changes = updates.changes()

        async with self.database.session() as db:
            feed = await db.get(FeedSource, feed_id)
            if feed is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")

            if changes.get("category_id") is not None:
                await self._check_category(db, changes["category_id"])

            for name, value in changes.items():
                setattr(feed, name, value)
            if "url" in changes or "feed_size" in changes:
                feed.fetch_url = self.fetch_url_for(feed.url, feed.feed_size)

            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if "url" in changes:
                    raise DuplicateFeedError(f"Feed already exists: {changes['url']}") from e
                raise StoreError(f"Failed to update feed {feed_id}: {e.orig}") from e
            await db.refresh(feed)

        logger.info(f"Updated feed {feed_id}: {', '.join(changes) or 'no changes'}")
        return feed

    async def delete_feed(self, feed_id: int) -> Dict[str, Any]:
        """Delete a feed; its articles are removed by the cascade"""
        async with self.database.session() as db:
            feed = await db.get(FeedSource, feed_id)
            if feed is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")

            count_result = await db.execute(
                select(func.count(Article.id)).where(Article.feed_id == feed_id)
            )
            article_count = count_result.scalar() or 0
            feed_title, feed_url = feed.title, feed.url

            await db.delete(feed)
            await db.commit()

        logger.info(f"Deleted feed '{feed_title}' (ID: {feed_id}) with {article_count} articles")
        return {
            "feed_id": feed_id,
            "feed_title": feed_title,
            "feed_url": feed_url,
            "articles_deleted": article_count,
        }

    async def feed_stats(self, feed_id: int) -> Dict[str, int]:
        async with self.database.session() as db:
            if await db.get(FeedSource, feed_id) is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")

            result = await db.execute(
                select(Article.read, func.count(Article.id))
                .where(Article.feed_id == feed_id)
                .group_by(Article.read)
            )
            counts = {bool(read): count for read, count in result.all()}

        read_count = counts.get(True, 0)
        unread_count = counts.get(False, 0)
        return {
            "feed_id": feed_id,
            "total_articles": read_count + unread_count,
            "unread_articles": unread_count,
            "read_articles": read_count,
        }

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    async def upsert_article(
        self,
        feed_id: int,
        title: str,
        link: str,
        guid: Optional[str],
        description: Optional[str],
        publish_date: Optional[str],
        format: Optional[str],
        identifier: Optional[str],
        read: bool = False,
    ) -> Tuple[Article, bool]:
        """
        Insert an article unless (feed_id, link) is already stored.

        An existing row is returned untouched, so re-ingestion never resets
        its read flag.

        Returns:
            (article, already_existed)

        Raises:
            StoreError: any failure other than the expected duplicate
        """
        values = {
            "feed_id": feed_id,
            "title": title or "",
            "link": link,
            "guid": guid,
            "description": description,
            "publish_date": publish_date,
            "format": format,
            "identifier": identifier,
            "read": read,
        }

        try:
            async with self.database.session() as db:
                async with db.begin():
                    insert = _UPSERT_DIALECTS.get(self.database.dialect_name)
                    if insert is not None:
                        stmt = (
                            insert(Article)
                            .values(**values)
                            .on_conflict_do_nothing(index_elements=["feed_id", "link"])
                            .returning(Article.id)
                        )
                        article_id = (await db.execute(stmt)).scalar_one_or_none()
                    else:
                        article_id = await self._insert_or_ignore(db, values)

                    if article_id is not None:
                        article = await db.get(Article, article_id)
                        return article, False

                    result = await db.execute(
                        select(Article).where(Article.feed_id == feed_id, Article.link == link)
                    )
                    article = result.scalar_one_or_none()
                    if article is None:
                        # Conflict on a row that is gone again (feed deleted concurrently)
                        raise StoreError(f"Article {link} for feed {feed_id} vanished after conflict")
                    return article, True
        except StoreError:
            raise
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to store article {link} for feed {feed_id}: {e}") from e

    @staticmethod
    async def _insert_or_ignore(db, values: Dict[str, Any]) -> Optional[int]:
        """Portable insert for dialects without ON CONFLICT support"""
        try:
            async with db.begin_nested():
                article = Article(**values)
                db.add(article)
            return article.id
        except IntegrityError:
            return None

    async def list_articles(self, limit: int = 50, offset: int = 0) -> List[Article]:
        query = (
            select(Article)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self.database.session() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def list_articles_by_feed(self, feed_id: int, limit: int = 100) -> List[Article]:
        query = (
            select(Article)
            .where(Article.feed_id == feed_id)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(limit)
        )
        async with self.database.session() as db:
            if await db.get(FeedSource, feed_id) is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")
            result = await db.execute(query)
            return list(result.scalars().all())

    async def count_articles(self, feed_id: Optional[int] = None) -> int:
        query = select(func.count(Article.id))
        if feed_id is not None:
            query = query.where(Article.feed_id == feed_id)
        async with self.database.session() as db:
            result = await db.execute(query)
            return result.scalar() or 0

    async def get_article(self, article_id: int) -> Article:
        async with self.database.session() as db:
            article = await db.get(Article, article_id)
            if article is None:
                raise ArticleNotFoundError(f"Article {article_id} not found")
            return article

    async def search_articles(self, query: str, limit: int = 20) -> List[Article]:
        """Case-insensitive match on title and description"""
        pattern = f"%{_escape_like(query.strip())}%"
        stmt = (
            select(Article)
            .where(or_(
                Article.title.ilike(pattern, escape="\\"),
                Article.description.ilike(pattern, escape="\\"),
            ))
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(limit)
        )
        async with self.database.session() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def set_article_read(self, article_id: int, read: bool) -> Article:
        async with self.database.session() as db:
            article = await db.get(Article, article_id)
            if article is None:
                raise ArticleNotFoundError(f"Article {article_id} not found")
            article.read = read
            await db.commit()
            await db.refresh(article)
            return article

    async def delete_article(self, article_id: int) -> None:
        async with self.database.session() as db:
            result = await db.execute(delete(Article).where(Article.id == article_id))
            if result.rowcount == 0:
                raise ArticleNotFoundError(f"Article {article_id} not found")
            await db.commit()
