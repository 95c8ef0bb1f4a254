"""Retry with capped exponential backoff and optional jitter."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

from regfeed.core.errors import SourceError, classify_exception
from regfeed.core.logging import get_logger, sanitize_url
from regfeed.resilience.config import RetryConfig

log = get_logger("resilience.retry")

T = TypeVar("T")


def compute_backoff_delay(
    attempt: int,
    config: RetryConfig,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay in seconds after failed attempt number ``attempt`` (1-based).

    ``min(base_delay * exponential_base ** (attempt - 1), max_delay)``, scaled
    by a uniform factor in [0.5, 1.5) when jitter is on and capped again at
    ``max_delay``.
    """
    delay = min(config.base_delay * config.exponential_base ** (attempt - 1), config.max_delay)
    if config.jitter:
        delay = min(delay * (0.5 + rng()), config.max_delay)
    return delay


def is_retryable(error: SourceError) -> bool:
    return error.retryable


class RetryPolicy:
    """Runs an async operation up to ``max_attempts`` times.

    ``should_retry`` and ``backoff`` are pluggable so the loop can be reused
    with a different error predicate or delay schedule.
    """

    def __init__(
        self,
        config: RetryConfig,
        should_retry: Callable[[SourceError], bool] = is_retryable,
        backoff: Optional[Callable[[int], float]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "source",
    ):
        self.config = config
        self.should_retry = should_retry
        self.backoff = backoff or (lambda attempt: compute_backoff_delay(attempt, config))
        self._sleep = sleep
        self.name = name

    def _delay_for(self, attempt: int, error: SourceError) -> float:
        delay = self.backoff(attempt)
        if error.retry_after is not None:
            delay = min(max(delay, error.retry_after), self.config.max_delay)
        return delay

    async def run(self, operation: Callable[[int], Awaitable[T]], label: str = "") -> T:
        """Call ``operation(attempt)`` until it succeeds or retries run out.

        Every failure is converted to a SourceError. Non-retryable errors and
        the last retryable one propagate to the caller.
        """
        attempt = 1
        while True:
            try:
                return await operation(attempt)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                error = classify_exception(exc, source=self.name)
                if not self.should_retry(error) or attempt >= self.config.max_attempts:
                    if error.retryable:
                        log.warning(
                            f"{self.name} giving up after {attempt} attempt(s) "
                            f"on {sanitize_url(label)}: {error.error_type.value}"
                        )
                    if error is exc:
                        raise
                    raise error from exc

                delay = self._delay_for(attempt, error)
                log.info(
                    f"{self.name} attempt {attempt}/{self.config.max_attempts} failed "
                    f"({error.error_type.value}); retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                attempt += 1
