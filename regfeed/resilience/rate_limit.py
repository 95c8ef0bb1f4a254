"""Async token bucket limiting outbound requests per adapter."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from regfeed.core.errors import DeadlineExceededError
from regfeed.core.logging import get_logger

log = get_logger("resilience.rate_limit")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class TokenBucket:
    """Token bucket that sleeps the caller instead of rejecting.

    Capacity is ``burst`` (or ``requests_per_minute`` when no burst is set) and
    tokens refill continuously at ``requests_per_minute / 60`` per second.
    """

    def __init__(
        self,
        requests_per_minute: float,
        burst: Optional[int] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.capacity = float(burst or requests_per_minute)
        self.refill_rate = requests_per_minute / 60.0
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._updated_at = now

    def wait_time(self) -> float:
        """Seconds until one token is available."""
        self._refill()
        if self._tokens >= 1:
            return 0.0
        return (1 - self._tokens) / self.refill_rate

    async def acquire(self, deadline: Optional[float] = None) -> None:
        async with self._lock:
            wait = self.wait_time()
            if wait > 0:
                if deadline is not None and self._clock() + wait > deadline:
                    raise DeadlineExceededError(f"rate limit wait of {wait:.2f}s exceeds deadline")
                log.debug(f"Rate limit reached, sleeping {wait:.2f}s")
                await self._sleep(wait)
                self._refill()
            # Tokens may dip slightly below zero if the clock did not advance
            # by the full wait; the debt is repaid by the next refill.
            self._tokens -= 1
