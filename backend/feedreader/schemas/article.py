from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class ArticleResponse(BaseModel):
    id: int
    feed_id: int
    title: str
    link: str
    guid: Optional[str] = None
    description: Optional[str] = None
    publish_date: Optional[str] = None
    format: Optional[str] = None
    identifier: Optional[str] = None
    read: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ArticleReadUpdate(BaseModel):
    read: bool
