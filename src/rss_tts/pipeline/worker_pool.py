"""
Worker pool for speech synthesis.

A fixed number of threads drain a bounded queue of SynthesisRequests. Each
request goes through the dedup gate, the synthesis backend and the output
finalizer. A failed item is logged and counted; the worker then moves on to
the next request, so one bad article never stops the pool.
"""

import queue
import threading
import time
from enum import Enum
from typing import List, Optional

from ..audio.backends.base import SynthesisBackend
from ..audio.content import item_identifier
from ..audio.dedup import DedupGate
from ..audio.finalizer import OutputFinalizer
from ..utils.error_handling import PoolClosedError, SynthesisCancelled
from ..utils.logging_config import PerformanceLogger, get_logger, log_exception
from .models import PoolStats, SynthesisRequest

logger = get_logger(__name__)

# Queued once per worker by close(); a worker exits when it dequeues one.
_CLOSE = object()


class PoolState(Enum):
    CONSTRUCTING = "constructing"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class WorkerPool:
    """
    Owns the request queue and the worker threads.

    Lifecycle: start() -> submit()* -> close() -> join(). close() must only be
    called once every producer has finished submitting; join() returns after
    all workers have drained the queue and exited.
    """

    def __init__(self, backend: SynthesisBackend,
                 queue_capacity: int,
                 concurrency: int,
                 finalizer: OutputFinalizer = None,
                 cancel_event: threading.Event = None):
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")

        self.backend = backend
        self.finalizer = finalizer or OutputFinalizer()
        self.gate = DedupGate(backend.extension)
        self.cancel_event = cancel_event or threading.Event()
        self.queue_capacity = queue_capacity
        self.worker_count = max(1, min(concurrency, queue_capacity))
        self.stats = PoolStats()

        self._queue = queue.Queue(maxsize=queue_capacity)
        self._threads: List[threading.Thread] = []
        self._state = PoolState.CONSTRUCTING
        self._cond = threading.Condition()
        self._pending_submits = 0

    @property
    def state(self) -> PoolState:
        with self._cond:
            return self._state

    def start(self) -> 'WorkerPool':
        """Spawn the worker threads"""
        with self._cond:
            if self._state is not PoolState.CONSTRUCTING:
                raise RuntimeError(f"Worker pool cannot start from state {self._state.value}")

            for index in range(self.worker_count):
                thread = threading.Thread(target=self._worker_loop, name=f"tts-worker-{index + 1}", daemon=True)
                self._threads.append(thread)
                thread.start()
            self._state = PoolState.RUNNING

        logger.info(f"Started {self.worker_count} synthesis workers (queue capacity {self.queue_capacity})")
        return self

    def submit(self, request: SynthesisRequest, timeout: Optional[float] = None):
        """
        Enqueue a request, blocking while the queue is full.

        Raises:
            PoolClosedError: If the pool is not running
            queue.Full: If timeout is given and no slot became free in time
        """
        with self._cond:
            if self._state is not PoolState.RUNNING:
                raise PoolClosedError(f"Cannot submit to a worker pool in state {self._state.value}")
            self._pending_submits += 1

        try:
            self._queue.put(request, timeout=timeout)
        finally:
            with self._cond:
                self._pending_submits -= 1
                self._cond.notify_all()

    def close(self):
        """Stop accepting requests and let workers exit once the queue is drained"""
        with self._cond:
            if self._state is PoolState.CONSTRUCTING:
                raise RuntimeError("Worker pool was never started")
            if self._state is not PoolState.RUNNING:
                logger.warning("Worker pool already closed")
                return

            self._state = PoolState.DRAINING
            while self._pending_submits:
                self._cond.wait()

        logger.info("Closing work queue")
        for _ in self._threads:
            self._queue.put(_CLOSE)

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every worker to exit.

        Returns:
            True once all workers have finished, False if timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)

        if any(thread.is_alive() for thread in self._threads):
            return False

        with self._cond:
            if self._state is PoolState.DRAINING:
                self._state = PoolState.CLOSED
                logger.info(f"All workers finished: {self.stats.as_dict()}")
        return True

    def _worker_loop(self):
        while True:
            request = self._queue.get()
            try:
                if request is _CLOSE:
                    return
                self._process(request)
            finally:
                self._queue.task_done()

    def _process(self, request: SynthesisRequest):
        item = request.item

        if self.cancel_event.is_set():
            logger.info(f"Shutting down, not processing '{item.title}'")
            self.stats.record('cancelled')
            return

        path = None
        try:
            identifier = item_identifier(item.title)
            path = self.gate.path_for(identifier, request.directory)

            if self.gate.should_skip(identifier, request.directory, item.title):
                self.stats.record('skipped')
                return

            logger.info(f"Start processing '{item.title}'")
            with PerformanceLogger(f"speech synthesis for '{item.title}'", logger):
                audio = self.backend.synthesize(request)
                self.finalizer.finalize(audio, path, item, request.directory,
                                        tag_title=self.backend.embeds_title_tag)
        except SynthesisCancelled as e:
            logger.warning(f"Synthesis cancelled for '{item.title}': {e}")
            self.stats.record('cancelled')
            return
        except Exception as e:
            # Worker boundary: one failed item must not take the worker down with it.
            log_exception(logger, e, context=f"processing '{item.title}'",
                          extra_data={'title': item.title, 'path': str(path)})
            self.stats.record('failed')
            return

        self.stats.record('succeeded')
        logger.info(f"Finished processing '{item.title}', written to {path}")
