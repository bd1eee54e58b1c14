"""
Exponential-backoff retries around database calls.

Only transient driver errors are retried; anything else (duplicate keys,
bad queries) propagates on the first attempt.
"""

import functools
import time
from typing import Callable, Optional, TypeVar

from loguru import logger
from pymongo.errors import AutoReconnect, ConnectionFailure, NetworkTimeout, ServerSelectionTimeoutError

T = TypeVar("T")

TRANSIENT_ERRORS = (AutoReconnect, ConnectionFailure, NetworkTimeout, ServerSelectionTimeoutError)

MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 0.1  # seconds


def with_retry(
    operation: Callable[[], T],
    retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_RETRY_DELAY,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Run `operation`, retrying transient MongoDB failures.

    The n-th retry waits `initial_delay * 2 ** n` seconds. The last error is
    re-raised once `retries` attempts have failed.
    """
    sleep = sleep or time.sleep
    attempts = max(1, retries)
    for attempt in range(attempts):
        try:
            return operation()
        except TRANSIENT_ERRORS as e:
            if attempt == attempts - 1:
                logger.error(f"  ✖ [DB] Giving up after {attempts} attempts: {e}")
                raise
            delay = initial_delay * (2 ** attempt)
            logger.warning(f"  ! [DB] Transient error ({e.__class__.__name__}), retry {attempt + 1}/{attempts - 1} in {delay:.2f}s")
            sleep(delay)
    raise RuntimeError("Max retries reached")


def retrying(func: Callable[..., T]) -> Callable[..., T]:
    """Decorator form of `with_retry` for storage methods.

    The owning object may define `retries` and `retry_delay` attributes.
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        return with_retry(
            lambda: func(self, *args, **kwargs),
            retries=getattr(self, "retries", MAX_RETRIES),
            initial_delay=getattr(self, "retry_delay", INITIAL_RETRY_DELAY),
        )

    return wrapper
