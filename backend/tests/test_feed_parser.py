"""
Unit Tests for the Feed Parser
==============================

Tests for RSS decoding, item ordering and rejection of malformed documents.
"""

import pytest

from conftest import SAMPLE_RSS_FEED, TRUNCATED_RSS_FEED
from feedreader.core.exceptions import ParseError
from feedreader.services.feed_parser import FeedParser

SAMPLE_ATOM_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Atom Feed</title>
    <link href="https://example.com"/>
    <id>https://example.com/feed</id>
    <updated>2024-09-07T00:00:01Z</updated>
    <entry>
        <title>Atom Article</title>
        <link href="https://example.com/atom-article"/>
        <id>https://example.com/atom-article</id>
        <updated>2024-09-05T12:00:00Z</updated>
    </entry>
</feed>"""

RSS_WITH_LINKLESS_ITEM = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Mixed Feed</title>
        <link>https://example.com</link>
        <description>One item lacks a link</description>
        <item>
            <title>No link here</title>
            <description>Orphan</description>
        </item>
        <item>
            <title>Linked</title>
            <link>https://example.com/linked</link>
        </item>
    </channel>
</rss>"""

RSS_WITH_BAD_DATE = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Dated Feed</title>
        <link>https://example.com</link>
        <description>Item with a free-form date</description>
        <item>
            <title>Paper</title>
            <link>https://example.com/paper</link>
            <pubDate>not a real date</pubDate>
        </item>
    </channel>
</rss>"""


class TestFeedParser:
    """Test cases for FeedParser."""

    def setup_method(self):
        self.parser = FeedParser()

    def test_parse_channel_metadata(self):
        parsed = self.parser.parse(SAMPLE_RSS_FEED)

        assert parsed.channel.title == "Example Feed"
        assert parsed.channel.description == "Feed used for testing"
        assert parsed.channel.link == "https://example.com"

    def test_items_in_document_order(self):
        parsed = self.parser.parse(SAMPLE_RSS_FEED)

        assert [item.link for item in parsed.items] == [
            "https://example.com/articles/1",
            "https://example.com/articles/2",
        ]
        assert parsed.items[0].title == "First Article"
        assert parsed.items[0].guid == "article-1"
        assert parsed.items[1].description == "Plain text body"

    def test_publish_date_kept_as_text(self):
        parsed = self.parser.parse(SAMPLE_RSS_FEED)
        assert parsed.items[0].publish_date == "Thu, 05 Sep 2024 12:00:00 GMT"

    def test_unparseable_date_is_not_an_error(self):
        parsed = self.parser.parse(RSS_WITH_BAD_DATE)
        assert parsed.items[0].publish_date == "not a real date"

    def test_item_without_link_skipped(self):
        parsed = self.parser.parse(RSS_WITH_LINKLESS_ITEM)

        assert len(parsed.items) == 1
        assert parsed.items[0].title == "Linked"

    def test_truncated_document_rejected(self):
        with pytest.raises(ParseError):
            self.parser.parse(TRUNCATED_RSS_FEED, url="https://example.com/broken.xml")

    def test_parse_error_carries_url(self):
        with pytest.raises(ParseError) as exc_info:
            self.parser.parse(TRUNCATED_RSS_FEED, url="https://example.com/broken.xml")
        assert exc_info.value.url == "https://example.com/broken.xml"

    @pytest.mark.parametrize("payload", [b"", b"   \n  "])
    def test_empty_document_rejected(self, payload):
        with pytest.raises(ParseError):
            self.parser.parse(payload)

    def test_html_page_rejected(self):
        with pytest.raises(ParseError):
            self.parser.parse(b"<html><body><h1>Not a feed</h1></body></html>")

    def test_atom_document_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            self.parser.parse(SAMPLE_ATOM_FEED)
        assert "Unsupported feed format" in str(exc_info.value)

    def test_channel_without_items(self):
        payload = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Empty</title><link>https://example.com</link>
<description>Nothing yet</description></channel></rss>"""
        parsed = self.parser.parse(payload)

        assert parsed.channel.title == "Empty"
        assert parsed.items == []
