"""Sliding-window rate limiter for per-job request throttling."""

import asyncio
import time
from collections import deque
from typing import Deque


class SlidingWindowRateLimiter:
    """Sliding-window rate limiter.

    Keeps the timestamps of requests issued in the trailing window. When the
    window already holds ``max_requests`` entries, ``acquire()`` waits until
    the oldest one falls out of the window. Each running scrape owns its own
    instance, so limits never leak between jobs.
    """

    # Extra wait added once the window is saturated, in seconds
    SAFETY_MARGIN = 0.01

    def __init__(self, requests_per_second: float, window_seconds: float = 1.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests allowed within one window
            window_seconds: Length of the trailing window (default 1 second)
        """
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be greater than 0")
        # A fractional limit still lets one request through per window
        self.max_requests = max(1, int(requests_per_second))
        self.window = window_seconds
        self._timestamps: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        """Drop timestamps that are no longer inside the window."""
        while self._timestamps and now - self._timestamps[0] >= self.window:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Wait until one more request fits in the window, then record it."""
        async with self._lock:
            while True:
                now = time.monotonic()
                self._prune(now)
                if len(self._timestamps) < self.max_requests:
                    break
                oldest = self._timestamps[0]
                wait_time = self.window - (now - oldest) + self.SAFETY_MARGIN
                await asyncio.sleep(max(wait_time, 0))

            self._timestamps.append(time.monotonic())

    @property
    def in_window(self) -> int:
        """Number of requests recorded in the current window."""
        self._prune(time.monotonic())
        return len(self._timestamps)
