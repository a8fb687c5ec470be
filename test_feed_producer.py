#!/usr/bin/env python3
"""
Tests for feed parsing and the feed-to-queue producer
"""

from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import feedparser
import pytest
import requests

from conftest import NOW, make_item
from rss_tts.podcast.feed_parser import (
    Feed,
    FeedParser,
    create_feed_directory,
    feed_directory,
    feed_from_parsed,
    sanitize_path_component,
)
from rss_tts.podcast.producer import FeedProducer, normalize_language
from rss_tts.utils.error_handling import FeedFetchError

SAMPLE_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example News</title>
    <link>https://example.com</link>
    <language>zh-cn</language>
    <lastBuildDate>Wed, 01 May 2024 10:00:00 GMT</lastBuildDate>
    <item>
      <title>First story</title>
      <link>https://example.com/1</link>
      <description>&lt;p&gt;Short summary&lt;/p&gt;</description>
      <pubDate>Wed, 01 May 2024 09:30:00 GMT</pubDate>
    </item>
    <item>
      <title>Second story</title>
      <link>https://example.com/2</link>
      <description>Another summary</description>
    </item>
  </channel>
</rss>
"""


def make_producer(submitted, max_items=10, since_hours=48, **kwargs):
    return FeedProducer(submitted.append, max_item_per_feed=max_items, item_since_hours=since_hours,
                        clock=lambda: NOW, **kwargs)


def make_feed(*items, language="en-US"):
    return Feed(title="Example News", url="https://example.com/rss", language=language, updated=NOW,
                items=tuple(items))


class TestFeedParsing:

    def test_feed_from_parsed(self):
        feed = feed_from_parsed(feedparser.parse(SAMPLE_RSS), "https://example.com/rss")

        assert feed.title == "Example News"
        assert feed.language == "zh-cn"
        assert [item.title for item in feed.items] == ["First story", "Second story"]

        first = feed.items[0]
        assert first.published == NOW - timedelta(hours=2, minutes=30)
        assert "Short summary" in first.description
        assert first.language == "zh-cn", "Items inherit the feed language"
        assert feed.items[1].published is None

    def test_parse_feed_uses_session(self):
        session = MagicMock()
        session.get.return_value.content = SAMPLE_RSS

        parser = FeedParser(session=session)
        feed = parser.parse_feed("https://example.com/rss")

        session.get.assert_called_once_with("https://example.com/rss", timeout=30.0)
        assert len(feed.items) == 2

    def test_unreachable_feed_raises_after_retries(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")

        with patch('rss_tts.utils.error_handling.time.sleep'):
            with pytest.raises(FeedFetchError):
                FeedParser(session=session).parse_feed("https://example.com/rss")

        assert session.get.call_count == 3, "Two retries after the first attempt"

    def test_garbage_feed_is_rejected(self):
        session = MagicMock()
        session.get.return_value.content = b"<html><body>not a feed"

        with pytest.raises(FeedFetchError):
            FeedParser(session=session).parse_feed("https://example.com/rss")


class TestFeedDirectory:

    def test_layout(self, tmp_path):
        feed = make_feed()
        expected = tmp_path / "Example News" / NOW.astimezone().strftime('%Y-%m-%d')
        assert feed_directory(str(tmp_path), feed) == expected
        assert not expected.exists(), "Computing the directory must not create it"

    def test_create(self, tmp_path):
        directory = create_feed_directory(str(tmp_path), make_feed())
        assert directory.is_dir()
        assert directory.is_absolute()

    def test_unsafe_titles(self):
        assert sanitize_path_component('News: "World"/Local') == 'News_ _World__Local'
        assert sanitize_path_component('...') == 'feed'


class TestNormalizeLanguage:

    @pytest.mark.parametrize("tag", ["zh", "zh-CN", "zh-tw", "ZH-HK"])
    def test_chinese_tags_map_to_mandarin(self, tag):
        assert normalize_language(tag) == "cmn-CN"

    def test_other_tags_unchanged(self):
        assert normalize_language("en-GB") == "en-GB"
        assert normalize_language("fr") == "fr"

    def test_empty_tag_uses_default(self):
        assert normalize_language("", default="de-DE") == "de-DE"


class TestFeedProducer:

    def test_only_recent_items_are_enqueued(self):
        submitted = []
        producer = make_producer(submitted, max_items=5, since_hours=48)
        feed = make_feed(make_item("A", hours_ago=1), make_item("B", hours_ago=72))

        count = producer.enqueue_feed(feed, Path("/tmp/out"))

        assert count == 1
        assert [request.item.title for request in submitted] == ["A"]

    def test_cap_applies_before_the_window(self):
        submitted = []
        producer = make_producer(submitted, max_items=2)
        feed = make_feed(make_item("old-1", hours_ago=100), make_item("old-2", hours_ago=100),
                         make_item("recent", hours_ago=1))

        assert producer.enqueue_feed(feed, Path("/tmp/out")) == 0
        assert submitted == []

    def test_feed_order_is_kept(self):
        submitted = []
        producer = make_producer(submitted, max_items=3)
        feed = make_feed(*(make_item(f"item-{i}", hours_ago=i + 1) for i in range(5)))

        producer.enqueue_feed(feed, Path("/tmp/out"))

        assert [request.item.title for request in submitted] == ["item-0", "item-1", "item-2"]

    def test_updated_time_used_without_published(self):
        submitted = []
        producer = make_producer(submitted)
        feed = make_feed(make_item("updated-only", hours_ago=None, updated_hours_ago=2),
                         make_item("undated", hours_ago=None))

        producer.enqueue_feed(feed, Path("/tmp/out"))

        assert [request.item.title for request in submitted] == ["updated-only"]

    def test_request_fields(self):
        submitted = []
        producer = make_producer(submitted, use_natural_voice=True, speech_speed=1.25)
        feed = make_feed(make_item("新闻"), language="zh-CN")

        producer.enqueue_feed(feed, Path("/tmp/out"))

        request = submitted[0]
        assert request.language_code == "cmn-CN"
        assert request.use_natural_voice is True
        assert request.speech_speed == 1.25
        assert request.directory == Path("/tmp/out")

    def test_item_language_overrides_feed(self):
        submitted = []
        producer = make_producer(submitted)
        feed = make_feed(make_item("Bonjour", language="fr-FR"), language="en-US")

        producer.enqueue_feed(feed, Path("/tmp/out"))

        assert submitted[0].language_code == "fr-FR"

    def test_has_recent_items(self):
        producer = make_producer([])
        assert producer.has_recent_items(make_feed(make_item("A", hours_ago=47)))
        assert not producer.has_recent_items(make_feed(make_item("A", hours_ago=49)))
        assert not producer.has_recent_items(make_feed())
