"""
RSS/Atom feed retrieval for the RSS-to-Speech pipeline.
Fetches feeds over HTTP and converts entries into immutable FeedItem values.
"""

import calendar
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import feedparser
import requests

from ..utils.error_handling import FeedFetchError, OutputError, retry_with_backoff
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

USER_AGENT = 'RSS-TTS/1.0 (feed-to-speech narrator)'


@dataclass(frozen=True)
class FeedItem:
    """One article within a feed"""
    title: str
    content: str = ""
    description: str = ""
    language: str = ""
    published: Optional[datetime] = None
    updated: Optional[datetime] = None
    link: str = ""

    @property
    def file_time(self) -> Optional[datetime]:
        """Timestamp used for the output file: updated time, then published time"""
        return self.updated or self.published


@dataclass(frozen=True)
class Feed:
    """A parsed feed"""
    title: str
    url: str
    language: str = ""
    updated: Optional[datetime] = None
    items: Tuple[FeedItem, ...] = field(default_factory=tuple)


def _struct_to_datetime(value) -> Optional[datetime]:
    """feedparser normalises dates to UTC struct_time"""
    if not value:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def _entry_to_item(entry, language: str) -> FeedItem:
    content = ""
    if entry.get('content'):
        content = entry['content'][0].get('value', '')

    return FeedItem(
        title=entry.get('title', ''),
        content=content,
        description=entry.get('summary', ''),
        language=language,
        published=_struct_to_datetime(entry.get('published_parsed')),
        updated=_struct_to_datetime(entry.get('updated_parsed')),
        link=entry.get('link', ''),
    )


def feed_from_parsed(parsed, url: str) -> Feed:
    """Convert a feedparser result into a Feed"""
    meta = parsed.get('feed', {})
    language = meta.get('language', '') or ''
    items = tuple(_entry_to_item(entry, language) for entry in parsed.get('entries', []))

    return Feed(
        title=meta.get('title', '') or url,
        url=url,
        language=language,
        updated=_struct_to_datetime(meta.get('updated_parsed')),
        items=items,
    )


class FeedParser:
    """Fetches and parses RSS/Atom feeds"""

    def __init__(self, timeout: float = 30.0, session: requests.Session = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': USER_AGENT})

    @retry_with_backoff(max_retries=2, backoff_factor=2.0, retry_on=(requests.RequestException,))
    def _fetch(self, url: str) -> bytes:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.content

    def parse_feed(self, url: str) -> Feed:
        """
        Fetch and parse one feed.

        Raises:
            FeedFetchError: If the feed cannot be downloaded or has no usable structure
        """
        logger.info(f"Fetching feed: {url}")

        try:
            body = self._fetch(url)
        except requests.RequestException as e:
            raise FeedFetchError(f"Failed to fetch feed {url}: {e}") from e

        parsed = feedparser.parse(body)
        if parsed.get('bozo') and not parsed.get('entries'):
            raise FeedFetchError(f"Failed to parse feed {url}: {parsed.get('bozo_exception')}")
        if parsed.get('bozo'):
            logger.warning(f"Parser flagged feed as bozo: {parsed.get('bozo_exception')}")

        feed = feed_from_parsed(parsed, url)
        logger.info(f"Parsed feed '{feed.title}': {len(feed.items)} items, language '{feed.language}'")
        return feed

    def close(self):
        self.session.close()


def sanitize_path_component(name: str, max_length: int = 100) -> str:
    """Make a feed title safe to use as a directory name"""
    sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', name).strip().strip('.')
    sanitized = re.sub(r'\s+', ' ', sanitized)
    return sanitized[:max_length] or 'feed'


def feed_directory(output_root: str, feed: Feed, now: datetime = None) -> Path:
    """
    Output directory for a feed: {output_root}/{feed title}/{feed update date},
    falling back to today's date when the feed carries no update time.
    """
    stamp = feed.updated or now or datetime.now(timezone.utc)
    return Path(output_root) / sanitize_path_component(feed.title) / stamp.astimezone().strftime('%Y-%m-%d')


def create_feed_directory(output_root: str, feed: Feed, now: datetime = None) -> Path:
    """Create the feed's output directory and return its absolute path"""
    directory = feed_directory(output_root, feed, now)

    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Could not create output directory {directory}: {e}") from e

    logger.debug(f"Using output directory {directory}")
    return directory.resolve()
