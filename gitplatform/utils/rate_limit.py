"""
Sliding-window rate limiter.

Advisory, process-local throttling used to avoid provoking upstream 429s.
It does not replace the transport's handling of real 429 responses.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Per-key sliding window admission control.

    Checking and recording are separate calls: check before dispatching a
    request and record only once it has actually been issued, so requests
    rejected locally never count against the window.
    """

    def __init__(
        self,
        limit: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the limiter.

        :param limit: Maximum requests per key inside one window.
        :param window: Window length in seconds.
        :param clock: Monotonic clock returning seconds.
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window <= 0:
            raise ValueError("window must be positive")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError(f"Invalid rate limit key: {key!r}")

    def _prune(self, key: str, now: float) -> Deque[float]:
        timestamps = self._windows.get(key)
        if timestamps is None:
            return deque()
        # Timestamps are appended in order, so expired ones sit on the left.
        while timestamps and now - timestamps[0] >= self.window:
            timestamps.popleft()
        return timestamps

    def is_within_limit(self, key: str) -> bool:
        """Return True if another request for ``key`` may be dispatched now."""
        self._check_key(key)
        timestamps = self._prune(key, self._clock())
        return len(timestamps) < self.limit

    def record_request(self, key: str) -> None:
        """Record that a request for ``key`` was issued now."""
        self._check_key(key)
        now = self._clock()
        timestamps = self._windows.setdefault(key, deque())
        timestamps.append(now)

    def get_remaining(self, key: str) -> int:
        """Requests still allowed for ``key`` in the current window."""
        self._check_key(key)
        timestamps = self._prune(key, self._clock())
        return max(0, self.limit - len(timestamps))

    def get_reset_time(self, key: str) -> float:
        """Seconds until the oldest request in the window expires."""
        self._check_key(key)
        now = self._clock()
        timestamps = self._prune(key, now)
        if not timestamps:
            return 0.0
        return max(0.0, timestamps[0] + self.window - now)

    def cleanup(self) -> int:
        """
        Drop expired timestamps and forget keys with empty windows.

        :return: Number of keys removed.
        """
        now = self._clock()
        removed = 0
        for key in list(self._windows):
            if not self._prune(key, now):
                del self._windows[key]
                removed += 1
        if removed:
            logger.debug(f"Rate limiter cleanup removed {removed} idle keys")
        return removed

    def clear(self) -> None:
        self._windows.clear()

    def keys(self) -> list:
        return list(self._windows)

    def stats(self, key: str) -> Dict[str, float]:
        return {
            "limit": self.limit,
            "remaining": self.get_remaining(key),
            "reset_time": self.get_reset_time(key),
        }
