"""
Values passed through the synthesis queue and reported back by the pool.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from ..podcast.feed_parser import FeedItem


@dataclass(frozen=True)
class SynthesisRequest:
    """One item to narrate; immutable once enqueued"""
    item: FeedItem
    directory: Path
    language_code: str
    use_natural_voice: bool = False
    speech_speed: float = 1.0


@dataclass
class PoolStats:
    """Per-run item outcome counters, safe to update from worker threads"""
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, outcome: str):
        with self._lock:
            setattr(self, outcome, getattr(self, outcome) + 1)

    def as_dict(self) -> Dict[str, int]:
        with self._lock:
            return {'succeeded': self.succeeded, 'skipped': self.skipped,
                    'failed': self.failed, 'cancelled': self.cancelled}
