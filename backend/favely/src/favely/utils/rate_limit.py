"""
In-memory fixed-window rate limiting.

Counters live in the process; a multi-worker deployment limits per worker.
"""

import math
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from favely.errors import RateLimitError

CLEANUP_INTERVAL = 5 * 60  # seconds


@dataclass
class RateLimitEntry:
    count: int
    start_time: float


@dataclass
class RateLimitStatus:
    current: int
    limit: int
    remaining: int
    reset: str


class RateLimiter:
    def __init__(
        self,
        limit: int,
        window: int,
        clock: Optional[Callable[[], float]] = None,
        cleanup_probability: float = 0.1,
    ):
        self.limit = limit
        self.window = window
        self._clock = clock or time.time
        self._cleanup_probability = cleanup_probability
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def cleanup(self) -> None:
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if now - entry.start_time > self.window + CLEANUP_INTERVAL
            ]
            for key in expired:
                del self._entries[key]

    def hit(self, key: str) -> RateLimitStatus:
        """Count one request for `key`; raise RateLimitError past the limit."""
        if random.random() < self._cleanup_probability:
            self.cleanup()

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now - entry.start_time > self.window:
                entry = RateLimitEntry(count=0, start_time=now)
                self._entries[key] = entry
            entry.count += 1
            count, start = entry.count, entry.start_time

        reset_at = start + self.window
        if count > self.limit:
            raise RateLimitError(
                retry_after=max(1, math.ceil(reset_at - now)),
                limit=self.limit,
                current=count,
            )

        return RateLimitStatus(
            current=count,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset=datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat(),
        )
