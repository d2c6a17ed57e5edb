"""Rate limiting for upstream aggregator calls.

Calls over the limit wait for a free slot instead of failing.

Example:
    limiter = RateLimiter([(3, 1.0), (50, 60.0)])  # 3/s and 50/min
    async with limiter:
        response = await client.get(url)
"""

import asyncio
import logging
import time
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter supporting several windows at once.

    A call is admitted only when every window has room for it.
    """

    def __init__(self, limits: list[tuple[int, float]], name: str = "rate_limiter"):
        """Initialize the limiter.

        Args:
            limits: (max_calls, interval_seconds) pairs
            name: Label used in log messages
        """
        for max_calls, interval in limits:
            if max_calls <= 0 or interval <= 0:
                raise ValueError(f"Invalid rate limit: {max_calls} per {interval}s")
        self.limits = list(limits)
        self.name = name
        self._calls: list[deque[float]] = [deque() for _ in self.limits]
        self._lock = asyncio.Lock()

    def _wait_time(self, now: float) -> float:
        """Seconds until every window can admit one more call."""
        wait = 0.0
        for (max_calls, interval), calls in zip(self.limits, self._calls):
            while calls and now - calls[0] >= interval:
                calls.popleft()
            if len(calls) >= max_calls:
                wait = max(wait, calls[0] + interval - now)
        return wait

    async def acquire(self) -> None:
        """Wait until a call is allowed, then record it."""
        # Holding the lock while sleeping keeps waiters in FIFO order
        async with self._lock:
            while True:
                now = time.monotonic()
                wait = self._wait_time(now)
                if wait <= 0:
                    break
                logger.debug(f"{self.name}: limit reached, waiting {wait:.2f}s")
                await asyncio.sleep(wait)

            for calls in self._calls:
                calls.append(now)

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def build_limiter(
    per_second: Optional[int] = None,
    per_minute: Optional[int] = None,
    name: str = "rate_limiter",
) -> Optional[RateLimiter]:
    """Build a limiter from per-second/per-minute settings (None if unlimited)."""
    limits = []
    if per_second:
        limits.append((per_second, 1.0))
    if per_minute:
        limits.append((per_minute, 60.0))
    if not limits:
        return None
    return RateLimiter(limits, name=name)
