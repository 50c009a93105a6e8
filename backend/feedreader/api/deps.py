from fastapi import Request

from feedreader.services.article_store import ArticleStore
from feedreader.services.ingestion import FeedIngestionWorker


def get_store(request: Request) -> ArticleStore:
    return request.app.state.store


def get_worker(request: Request) -> FeedIngestionWorker:
    return request.app.state.worker
