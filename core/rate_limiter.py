# core/rate_limiter.py
"""
In-memory fixed-window rate limiter

Each key gets a window of `window_seconds` that starts on its first request and
fully resets once it expires. Fixed windows allow a burst of up to twice the
limit across a window boundary; that is acceptable at this scale.

Instances are owned by the Flask application (see app.create_app) rather than
living at module level, so tests build isolated limiters.
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, Optional

from core.models import RateLimitEntry, RateLimitResult

logger = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe fixed-window request counter keyed by identifier"""

    def __init__(self, max_requests: int, window_seconds: float,
                 clock: Callable[[], float] = time.time, name: str = 'default'):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._sweeper: Optional[threading.Thread] = None

    def is_allowed(self, key: str) -> RateLimitResult:
        """
        Count one request for `key` and decide whether it may proceed

        A denied request does not advance the counter or move the window.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now >= entry.reset_time:
                entry = RateLimitEntry(count=1, reset_time=now + self.window_seconds)
                self._entries[key] = entry
                return RateLimitResult(True, self.max_requests - 1, entry.reset_time, self.max_requests)

            if entry.count >= self.max_requests:
                return RateLimitResult(False, 0, entry.reset_time, self.max_requests)

            entry.count += 1
            return RateLimitResult(
                True, self.max_requests - entry.count, entry.reset_time, self.max_requests
            )

    def retry_after(self, result: RateLimitResult) -> int:
        """Whole seconds until `result`'s window resets, at least 1"""
        return max(1, math.ceil(result.reset_time - self._clock()))

    def sweep(self) -> int:
        """Drop entries whose window has expired; returns how many were removed"""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now >= entry.reset_time]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Rate limiter '{self.name}' swept {len(expired)} expired entries")
        return len(expired)

    def get_stats(self) -> Dict[str, int]:
        """Entry counts for health reporting"""
        with self._lock:
            now = self._clock()
            active = sum(1 for entry in self._entries.values() if now < entry.reset_time)
            return {
                'total_entries': len(self._entries),
                'active_entries': active
            }

    def start_sweeper(self, interval: float = 300.0) -> None:
        """Run sweep() every `interval` seconds on a daemon thread"""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_event = threading.Event()
        stop_event = self._stop_event

        def run():
            while not stop_event.wait(interval):
                self.sweep()

        self._sweeper = threading.Thread(
            target=run, name=f'rate-limit-sweeper-{self.name}', daemon=True
        )
        self._sweeper.start()
        logger.info(f"Rate limiter '{self.name}' sweeper started (every {interval:.0f}s)")

    def close(self) -> None:
        """Stop the sweeper thread and forget every entry"""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None
        with self._lock:
            self._entries.clear()
