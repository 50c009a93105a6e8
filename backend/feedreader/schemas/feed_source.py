from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class FeedSourceCreate(BaseModel):
    url: str
    title: Optional[str] = None  # Defaults to the channel title
    feed_size: Optional[int] = Field(default=None, ge=1, le=999)
    sync: bool = True
    category_id: Optional[int] = None


class FeedSourceUpdate(BaseModel):
    """
    Typed partial update for a feed source.

    Only fields that are explicitly set are applied, so sending
    ``{"category_id": null}`` clears the category while omitting
    ``category_id`` leaves it untouched.
    """
    url: Optional[str] = None
    feed_size: Optional[int] = Field(default=None, ge=1, le=999)
    sync: Optional[bool] = None
    category_id: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"url": "https://hnrss.org/frontpage"},
                {"feed_size": 10},
                {"sync": False},
                {"category_id": None},
            ]
        }
    )

    def changes(self) -> dict:
        """Fields explicitly provided by the caller"""
        changes = self.model_dump(exclude_unset=True)
        # Only category_id may be cleared; None elsewhere means "not provided"
        return {
            key: value for key, value in changes.items()
            if value is not None or key == "category_id"
        }


class FeedSourceResponse(BaseModel):
    id: int
    url: str
    fetch_url: str
    title: str
    description: Optional[str] = None
    feed_size: int
    sync: bool
    category_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeedStatsResponse(BaseModel):
    feed_id: int
    total_articles: int
    unread_articles: int
    read_articles: int


class IngestionSummary(BaseModel):
    created: int
    existing: int
    failed_items: int
    error: Optional[str] = None


class FeedCreateResponse(BaseModel):
    message: str
    feed: FeedSourceResponse
    ingestion: IngestionSummary
