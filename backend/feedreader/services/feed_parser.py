import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import feedparser

from feedreader.core.exceptions import ParseError

logger = logging.getLogger(__name__)

# bozo exceptions that only report a recovered encoding problem
BENIGN_BOZO_EXCEPTIONS = (
    feedparser.CharacterEncodingOverride,
    feedparser.NonXMLContentType,
)


@dataclass
class ChannelInfo:
    title: str = ""
    description: str = ""
    link: str = ""


@dataclass
class FeedItem:
    """One <item> of a channel; every field is kept as opaque text"""
    title: str = ""
    link: str = ""
    guid: str = ""
    description: str = ""
    publish_date: str = ""
    format: str = ""
    identifier: str = ""


@dataclass
class ParsedFeed:
    channel: ChannelInfo
    items: List[FeedItem] = field(default_factory=list)


class FeedParser:
    """Decode an RSS payload into channel metadata and items"""

    def parse(self, payload: bytes, url: Optional[str] = None) -> ParsedFeed:
        """
        Parse a fetched RSS document.

        Items are returned in document order. Items without a link are
        skipped since the link identifies an entry within its feed. Dates
        are not interpreted.

        Raises:
            ParseError: payload is empty, not well-formed, or not an RSS document
        """
        if not payload or not payload.strip():
            raise ParseError("Empty feed document", url=url)

        feed = feedparser.parse(payload)

        if feed.bozo and not isinstance(feed.get("bozo_exception"), BENIGN_BOZO_EXCEPTIONS):
            bozo_msg = str(feed.get("bozo_exception") or "Invalid feed format")
            raise ParseError(f"Feed parsing error: {bozo_msg}", url=url)

        version = feed.get("version") or ""
        if not version.startswith("rss"):
            raise ParseError(f"Unsupported feed format: {version or 'unknown'}", url=url)

        channel = ChannelInfo(
            title=feed.feed.get("title", ""),
            description=feed.feed.get("description", "") or feed.feed.get("subtitle", ""),
            link=feed.feed.get("link", ""),
        )

        items = []
        for entry in feed.entries:
            item = self._parse_entry(entry)
            if item.link:
                items.append(item)
            else:
                logger.debug(f"Skipping item without link: {item.title[:60]!r}")

        return ParsedFeed(channel=channel, items=items)

    @staticmethod
    def _parse_entry(entry: Any) -> FeedItem:
        """Map a feedparser entry onto the item fields"""
        description = entry.get("summary", "") or entry.get("description", "")
        if not description and entry.get("content"):
            description = entry.content[0].get("value", "")

        return FeedItem(
            title=entry.get("title", ""),
            link=(entry.get("link") or "").strip(),
            guid=entry.get("id", "") or entry.get("guid", ""),
            description=description,
            publish_date=entry.get("published", ""),
            format=entry.get("format", "") or entry.get("dc_format", ""),
            identifier=entry.get("identifier", "") or entry.get("dc_identifier", ""),
        )
