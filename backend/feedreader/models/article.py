from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Boolean, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from feedreader.core.database import Base


def get_utc_now():
    """Return current UTC time with timezone info"""
    return datetime.now(timezone.utc)


class Article(Base):
    __tablename__ = "articles"
    __table_args__ = (
        # Link, not GUID, identifies an entry within a feed
        UniqueConstraint("feed_id", "link", name="uq_articles_feed_link"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    feed_id = Column(Integer, ForeignKey("feed_sources.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False, default="")
    link = Column(String, nullable=False)
    guid = Column(String, nullable=True)  # Advisory only, feeds populate it inconsistently
    description = Column(Text, nullable=True)  # Sanitized HTML
    publish_date = Column(String, nullable=True)  # Feed-supplied string, not parsed
    format = Column(String, nullable=True)
    identifier = Column(String, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now, nullable=False)

    # Relationships
    feed = relationship("FeedSource", back_populates="articles")
