"""
Custom exceptions for the feed reader application.

HTTP-facing errors are HTTPException subclasses raised by the API and the
store. Ingestion errors form their own hierarchy and never reach end users
except through the synchronous registration path.
"""

from typing import Optional

from fastapi import HTTPException, status


class FeedNotFoundError(HTTPException):
    """Raised when a feed source is not found."""
    def __init__(self, detail: str = "Feed not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ArticleNotFoundError(HTTPException):
    """Raised when an article is not found."""
    def __init__(self, detail: str = "Article not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class DuplicateFeedError(HTTPException):
    """Raised when a feed with the same origin URL already exists."""
    def __init__(self, detail: str = "Feed already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationError(HTTPException):
    """Raised when validation fails."""
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class IngestionError(Exception):
    """Base class for failures inside the ingestion pipeline."""


class FetchError(IngestionError):
    """
    Network retrieval of a feed failed.

    status_code is set when the server answered with a non-success status
    and left as None for transport failures (DNS, refused, timeout).
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{reason} ({url})")

    @property
    def is_status_error(self) -> bool:
        return self.status_code is not None

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None


class ParseError(IngestionError):
    """The fetched payload is not a well-formed syndication document."""

    def __init__(self, reason: str, url: Optional[str] = None):
        self.reason = reason
        self.url = url
        message = f"{reason} ({url})" if url else reason
        super().__init__(message)


class StoreError(IngestionError):
    """Persistence failed for a reason other than an expected duplicate."""


class UnexpectedFault(IngestionError):
    """Any other exception raised while processing one feed."""

    def __init__(self, feed_id: Optional[int], original: BaseException):
        self.feed_id = feed_id
        self.original = original
        super().__init__(f"Unexpected {type(original).__name__} for feed {feed_id}: {original}")
