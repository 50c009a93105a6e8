from fastapi import APIRouter, Depends, Query
from typing import List

from feedreader.api.deps import get_store
from feedreader.core.exceptions import ValidationError
from feedreader.schemas import ArticleReadUpdate, ArticleResponse
from feedreader.services.article_store import ArticleStore

router = APIRouter(prefix="/api", tags=["Articles"])


@router.get("/articles", response_model=List[ArticleResponse])
async def list_articles(
    limit: int = Query(50, ge=1, le=100, description="Number of articles to return"),
    offset: int = Query(0, ge=0, description="Offset for pagination"),
    store: ArticleStore = Depends(get_store),
):
    """
    List articles across all feeds, newest first.
    """
    return await store.list_articles(limit=limit, offset=offset)


# Declared before /articles/{article_id} so "search" is not taken for an ID
@router.get(
    "/articles/search",
    response_model=List[ArticleResponse],
    summary="Search Articles",
    description="Case-insensitive search over article titles and descriptions.",
)
async def search_articles(
    query: str = Query(..., description="Text to search for"),
    limit: int = Query(20, ge=1, le=100, description="Number of articles to return"),
    store: ArticleStore = Depends(get_store),
):
    if not query.strip():
        raise ValidationError("Search query cannot be empty")
    return await store.search_articles(query, limit=limit)


@router.get("/articles/{article_id}", response_model=ArticleResponse)
async def get_article(article_id: int, store: ArticleStore = Depends(get_store)):
    """
    Get a single article.
    """
    return await store.get_article(article_id)


@router.patch("/articles/{article_id}/read", response_model=ArticleResponse)
async def update_article_read(
    article_id: int,
    update: ArticleReadUpdate,
    store: ArticleStore = Depends(get_store),
):
    """
    Mark an article as read or unread.
    """
    return await store.set_article_read(article_id, update.read)


@router.delete("/articles/{article_id}")
async def delete_article(article_id: int, store: ArticleStore = Depends(get_store)):
    """
    Delete a single article.

    The next cycle stores it again if its feed still lists the entry.
    """
    await store.delete_article(article_id)
    return {"article_id": article_id, "message": "Article deleted successfully"}
