"""
Feed-to-queue producer.
Filters a parsed feed by item cap and recency window and submits one
SynthesisRequest per eligible item to the worker pool.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from .feed_parser import Feed, FeedItem
from ..pipeline.models import SynthesisRequest
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

MANDARIN_LANGUAGE_CODE = "cmn-CN"


def normalize_language(language: str, default: str = "en-US") -> str:
    """Map any Chinese tag (zh, zh-CN, ZH-tw...) to cmn-CN; empty tags use the default"""
    if 'zh' in (language or '').lower():
        return MANDARIN_LANGUAGE_CODE
    return language or default


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeedProducer:
    """Turns feeds into synthesis requests on a worker pool"""

    def __init__(self, submit: Callable[[SynthesisRequest], None],
                 max_item_per_feed: int,
                 item_since_hours: float,
                 use_natural_voice: bool = False,
                 speech_speed: float = 1.0,
                 default_language: str = "en-US",
                 clock: Callable[[], datetime] = utc_now):
        self.submit = submit
        self.max_item_per_feed = max_item_per_feed
        self.window = timedelta(hours=item_since_hours)
        self.use_natural_voice = use_natural_voice
        self.speech_speed = speech_speed
        self.default_language = default_language
        self.clock = clock

    @classmethod
    def from_config(cls, config, submit: Callable[[SynthesisRequest], None],
                    clock: Callable[[], datetime] = utc_now) -> 'FeedProducer':
        return cls(
            submit,
            max_item_per_feed=config.max_item_per_feed,
            item_since_hours=config.item_since,
            use_natural_voice=config.use_natural_voice,
            speech_speed=config.speech_speed,
            default_language=config.default_language,
            clock=clock,
        )

    def is_in_range(self, item: FeedItem, now: Optional[datetime] = None) -> bool:
        """True when the item was published within the recency window"""
        published = item.published or item.updated
        if published is None:
            return False
        return (now or self.clock()) - published <= self.window

    def has_recent_items(self, feed: Feed) -> bool:
        now = self.clock()
        return any(self.is_in_range(item, now) for item in feed.items)

    def enqueue_feed(self, feed: Feed, directory: Path) -> int:
        """
        Submit requests for the recent items among the first max_item_per_feed items.

        Items keep their feed order. submit() blocks while the pool's queue is
        full, so this call may block too.

        Returns:
            Number of requests submitted
        """
        logger.info(f"Feed '{feed.title}': considering {min(len(feed.items), self.max_item_per_feed)} "
                    f"of {len(feed.items)} items")

        now = self.clock()
        count = 0
        for item in feed.items[:self.max_item_per_feed]:
            if not self.is_in_range(item, now):
                logger.debug(f"Skipping '{item.title}': outside the recency window")
                continue

            request = SynthesisRequest(
                item=item,
                directory=Path(directory),
                language_code=normalize_language(item.language or feed.language, self.default_language),
                use_natural_voice=self.use_natural_voice,
                speech_speed=self.speech_speed,
            )
            logger.info(f"Adding item... title: {item.title}")
            self.submit(request)
            count += 1

        logger.info(f"Feed '{feed.title}': enqueued {count} items")
        return count
