from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Boolean, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from feedreader.core.database import Base


def get_utc_now():
    """Return current UTC time with timezone info"""
    return datetime.now(timezone.utc)


class FeedSource(Base):
    __tablename__ = "feed_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String, nullable=False, unique=True, index=True)  # Origin URL as supplied
    fetch_url = Column(String, nullable=False)  # Derived from url and feed_size
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    feed_size = Column(Integer, nullable=False, default=4)  # Max items requested per fetch
    sync = Column(Boolean, nullable=False, default=True)  # Polling enabled
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now, nullable=False)

    # Relationships
    category = relationship("Category", back_populates="feeds")
    articles = relationship(
        "Article",
        back_populates="feed",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<FeedSource id={self.id} url={self.url!r}>"
