"""
Error types and retry helpers for the RSS-to-Speech pipeline.
Item-level errors are contained by the worker pool; startup errors abort the run.
"""

import functools
import logging
import threading
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RssTtsError(Exception):
    """Base class for all pipeline errors"""
    pass


class ConfigError(RssTtsError):
    """Raised when configuration is missing or invalid (fatal)"""
    pass


class FeedFetchError(RssTtsError):
    """Raised when a feed cannot be fetched or parsed (fatal)"""
    pass


class BackendInitError(RssTtsError):
    """Raised when a synthesis backend cannot be constructed (fatal)"""
    pass


class TransientSynthesisError(RssTtsError):
    """A single synthesis attempt failed but may succeed when retried"""
    pass


class SynthesisError(RssTtsError):
    """Synthesis for one item failed for good"""
    pass


class SynthesisCancelled(SynthesisError):
    """Synthesis was abandoned because the run is shutting down"""
    pass


class OutputError(RssTtsError):
    """Writing or stamping an output artifact failed"""
    pass


class PoolClosedError(RssTtsError):
    """Raised when submitting to a worker pool that is no longer accepting work"""
    pass


def call_with_retry(func: Callable[[], T],
                    max_attempts: int = 5,
                    delay: float = 1.0,
                    backoff_factor: float = 1.0,
                    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
                    cancel_event: Optional[threading.Event] = None,
                    description: str = "operation") -> T:
    """
    Call func() until it succeeds or max_attempts is reached.

    Args:
        func: Zero-argument callable to invoke
        max_attempts: Total number of attempts, including the first one
        delay: Seconds to wait before the second attempt
        backoff_factor: Multiplier applied to the delay after every retry (1.0 = fixed delay)
        retry_on: Exception types that trigger a retry; anything else propagates immediately
        cancel_event: When set, pending retries are abandoned with SynthesisCancelled
        description: Human-readable label used in log messages

    Returns:
        Whatever func() returns on the first successful attempt

    Raises:
        The last exception raised by func() once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    wait = delay
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            logger.warning(f"Retrying {description} in {wait:.1f}s due to error: {last_error} "
                           f"(attempt {attempt}/{max_attempts})")
            if cancel_event is not None:
                if cancel_event.wait(wait):
                    raise SynthesisCancelled(f"{description} cancelled during retry") from last_error
            else:
                time.sleep(wait)
            wait *= backoff_factor

        if cancel_event is not None and cancel_event.is_set():
            raise SynthesisCancelled(f"{description} cancelled")

        try:
            return func()
        except retry_on as e:
            last_error = e
            logger.warning(f"{description} failed (attempt {attempt}/{max_attempts}): {e}")

    logger.error(f"{description} failed after {max_attempts} attempts: {last_error}")
    raise last_error


def retry_with_backoff(max_retries: int = 3,
                       backoff_factor: float = 2.0,
                       initial_delay: float = 1.0,
                       retry_on: Tuple[Type[BaseException], ...] = (Exception,)):
    """
    Decorator form of call_with_retry.

    max_retries counts retries after the first attempt, so max_retries=3 means
    up to four calls in total.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return call_with_retry(
                lambda: func(*args, **kwargs),
                max_attempts=max_retries + 1,
                delay=initial_delay,
                backoff_factor=backoff_factor,
                retry_on=retry_on,
                description=func.__name__,
            )
        return wrapper
    return decorator
