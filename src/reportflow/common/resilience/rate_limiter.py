"""Sliding-window rate limiter.

Used by the job worker to cap how many jobs may start per time window,
independently of how many worker slots are free.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from typing import Callable

from reportflow.common.resilience.config import RateLimiterConfig

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Sliding window rate limiter.

    Tracks permit timestamps in a sliding time window.

    Example:
        limiter = SlidingWindowRateLimiter(
            "jobs",
            RateLimiterConfig(rate=5, period_seconds=60.0),  # 5 per minute
        )

        await limiter.acquire_async()
    """

    def __init__(
        self,
        name: str,
        config: RateLimiterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._name = name
        self._config = config or RateLimiterConfig()
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> RateLimiterConfig:
        return self._config

    def try_acquire(self, permits: int = 1) -> bool:
        """Try to acquire permits without blocking."""
        with self._lock:
            self._cleanup_old_entries()
            if len(self._timestamps) + permits <= self._config.rate:
                now = self._clock()
                for _ in range(permits):
                    self._timestamps.append(now)
                return True
            return False

    def get_wait_time(self, permits: int = 1) -> float:
        """Get time to wait before permits are available."""
        with self._lock:
            self._cleanup_old_entries()

            excess = len(self._timestamps) + permits - self._config.rate
            if excess <= 0:
                return 0.0
            if len(self._timestamps) < excess:
                return self._config.period_seconds

            # Entries are appended in time order, so the oldest come first.
            expire_at = self._timestamps[excess - 1] + self._config.period_seconds
            return max(0.0, expire_at - self._clock())

    async def acquire_async(self, permits: int = 1, timeout: float | None = None) -> bool:
        """Wait until permits are available.

        Returns False only when ``timeout`` elapses first.
        """
        deadline = None if timeout is None else self._clock() + timeout
        while not self.try_acquire(permits):
            wait_time = self.get_wait_time(permits)
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0 or wait_time > remaining:
                    return False
            logger.debug(f"Rate limiter '{self._name}' waiting {wait_time:.2f}s")
            await asyncio.sleep(max(wait_time, 0.01))
        return True

    def _cleanup_old_entries(self) -> None:
        cutoff = self._clock() - self._config.period_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

