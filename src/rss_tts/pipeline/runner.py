"""
Pipeline runner: feeds in, narrated audio files out.

One producer thread per feed fills the worker pool's queue. The queue is
closed only after every producer has returned, and the run completes only
after every worker has exited. A fatal producer error (feed fetch failure,
unwritable output root) cancels the remaining work and is re-raised once
the pool has drained.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..audio.backends import SynthesisBackend, create_backend
from ..config.config_manager import PipelineConfig
from ..podcast.feed_parser import FeedParser, create_feed_directory, feed_directory
from ..podcast.producer import FeedProducer, utc_now
from ..utils.logging_config import get_logger, log_exception
from .models import SynthesisRequest
from .worker_pool import WorkerPool

logger = get_logger(__name__)


@dataclass
class RunSummary:
    """Outcome of one pipeline run"""
    feeds: int
    enqueued: int
    stats: Dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0
    planned: List[SynthesisRequest] = field(default_factory=list)


class PipelineRunner:
    """Wires feeds, producers, the worker pool and the synthesis backend together"""

    def __init__(self, config: PipelineConfig,
                 backend: Optional[SynthesisBackend] = None,
                 feed_parser_factory: Callable[[], FeedParser] = FeedParser,
                 cancel_event: Optional[threading.Event] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.config = config
        self._backend = backend
        self.feed_parser_factory = feed_parser_factory
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock

    def cancel(self):
        """Ask in-flight work to stop; safe to call from a signal handler"""
        self.cancel_event.set()

    def _process_feed(self, url: str, producer: FeedProducer, create_directories: bool = True) -> int:
        parser = self.feed_parser_factory()
        try:
            feed = parser.parse_feed(url)
        finally:
            parser.close()

        if not producer.has_recent_items(feed):
            logger.info(f"Feed '{feed.title}' has no items from the last {self.config.item_since}h, skipping")
            return 0

        if create_directories:
            directory = create_feed_directory(self.config.output_root, feed)
        else:
            directory = feed_directory(self.config.output_root, feed).absolute()
        return producer.enqueue_feed(feed, directory)

    def _run_producers(self, producer: FeedProducer, create_directories: bool = True) -> int:
        """Run one producer per feed; re-raise the first fatal error after all have stopped"""
        enqueued = 0
        errors = []

        with ThreadPoolExecutor(max_workers=len(self.config.feeds), thread_name_prefix="feed") as executor:
            futures = {
                executor.submit(self._process_feed, url, producer, create_directories): url
                for url in self.config.feeds
            }
            try:
                for future in as_completed(futures):
                    url = futures[future]
                    try:
                        enqueued += future.result()
                    except Exception as e:
                        log_exception(logger, e, context=f"feed {url}", extra_data={'feed_url': url})
                        errors.append(e)
                        self.cancel()
            except KeyboardInterrupt:
                logger.warning("Interrupted, cancelling remaining work")
                self.cancel()
                raise

        if errors:
            raise errors[0]
        return enqueued

    def _submit_unless_cancelled(self, pool: WorkerPool) -> Callable[[SynthesisRequest], None]:
        def submit(request: SynthesisRequest):
            if self.cancel_event.is_set():
                logger.debug(f"Run cancelled, not enqueueing '{request.item.title}'")
                return
            pool.submit(request)
        return submit

    def run(self) -> RunSummary:
        """Process every configured feed and wait for all synthesis to finish"""
        started = time.monotonic()
        backend = self._backend or create_backend(self.config, cancel_event=self.cancel_event)

        pool = WorkerPool(
            backend,
            queue_capacity=self.config.queue_capacity,
            concurrency=self.config.concurrent_workers,
            cancel_event=self.cancel_event,
        )
        producer = FeedProducer.from_config(self.config, self._submit_unless_cancelled(pool), clock=self.clock)

        pool.start()
        try:
            enqueued = self._run_producers(producer)
        finally:
            pool.close()
            pool.join()
            if self._backend is None:
                backend.close()

        summary = RunSummary(
            feeds=len(self.config.feeds),
            enqueued=enqueued,
            stats=pool.stats.as_dict(),
            duration_seconds=time.monotonic() - started,
        )
        logger.info(f"Done processing all feeds: {summary.enqueued} items enqueued, {summary.stats} "
                    f"in {summary.duration_seconds:.1f}s")
        return summary

    def plan(self) -> RunSummary:
        """List the requests a run would enqueue, without synthesizing anything"""
        started = time.monotonic()
        planned: List[SynthesisRequest] = []
        lock = threading.Lock()

        def collect(request: SynthesisRequest):
            with lock:
                planned.append(request)

        producer = FeedProducer.from_config(self.config, collect, clock=self.clock)
        enqueued = self._run_producers(producer, create_directories=False)

        return RunSummary(
            feeds=len(self.config.feeds),
            enqueued=enqueued,
            duration_seconds=time.monotonic() - started,
            planned=planned,
        )
