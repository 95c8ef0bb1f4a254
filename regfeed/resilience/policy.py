"""Resilience policy wrapping every outbound request of one adapter.

Order of checks for a single ``execute`` call:

1. response cache (a hit skips everything else)
2. circuit breaker
3. retry loop, where each attempt takes a rate-limit token and is bounded
   by ``timeout_seconds``

A call that still fails after its retries counts as one breaker failure.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional

import httpx

from regfeed.core.errors import DeadlineExceededError, SourceError
from regfeed.core.logging import get_logger, sanitize_url
from regfeed.resilience.cache import ResponseCache, TTLResponseCache
from regfeed.resilience.circuit_breaker import CircuitBreaker
from regfeed.resilience.config import AdapterConfig
from regfeed.resilience.rate_limit import TokenBucket
from regfeed.resilience.retry import RetryPolicy, compute_backoff_delay
from regfeed.schemas.requests import RawResponse, SourceRequest

log = get_logger("resilience.policy")


class ResiliencePolicy:
    def __init__(
        self,
        config: AdapterConfig,
        client: httpx.AsyncClient,
        cache: Optional[ResponseCache] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        name: str = "source",
    ):
        self.config = config
        self.client = client
        self.name = name
        self._clock = clock
        self.cache: Optional[ResponseCache] = None
        if config.cache.enabled:
            self.cache = cache if cache is not None else TTLResponseCache(config.cache.ttl_seconds, clock=clock)
        self.limiter = TokenBucket(
            config.rate_limit.requests_per_minute,
            config.rate_limit.burst,
            clock=clock,
            sleep=sleep,
        )
        self.breaker = CircuitBreaker(
            config.circuit_breaker.failure_threshold,
            config.circuit_breaker.reset_timeout_seconds,
            clock=clock,
            name=name,
        )
        self.retry = RetryPolicy(
            config.retry,
            should_retry=lambda error: error.retryable and not isinstance(error, DeadlineExceededError),
            backoff=lambda attempt: compute_backoff_delay(attempt, config.retry, rng),
            sleep=sleep,
            name=name,
        )

    async def execute(self, request: SourceRequest, deadline: Optional[float] = None) -> RawResponse:
        """Send ``request`` under the policy; raises SourceError on failure.

        ``deadline`` is an absolute time on the policy's clock.
        """
        if self.cache is not None:
            cached = self.cache.get(request.cache_key)
            if cached is not None:
                log.info(f"Cache hit for {self.name}: {sanitize_url(request.url)}")
                return cached.model_copy(update={"from_cache": True})

        self.breaker.before_call()
        try:
            response = await self.retry.run(
                lambda attempt: self._attempt(request, attempt, deadline),
                label=request.url,
            )
        except SourceError:
            self.breaker.record_failure()
            raise
        except asyncio.CancelledError:
            self.breaker.release_trial()
            raise

        self.breaker.record_success()
        if self.cache is not None:
            self.cache.set(request.cache_key, response)
        return response

    def evict(self, request: SourceRequest) -> None:
        """Drop a cached response whose body turned out to be unusable."""
        if self.cache is not None:
            self.cache.delete(request.cache_key)

    async def _attempt(self, request: SourceRequest, attempt: int, deadline: Optional[float]) -> RawResponse:
        await self.limiter.acquire(deadline)

        timeout = self.config.timeout_seconds
        if deadline is not None:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise DeadlineExceededError("deadline exceeded before request", source=self.name)
            timeout = min(timeout, remaining)

        log.debug(f"{self.name} attempt {attempt}: {request.method} {sanitize_url(request.url)}")
        return await asyncio.wait_for(self._send(request), timeout=timeout)

    async def _send(self, request: SourceRequest) -> RawResponse:
        response = await self.client.request(
            request.method,
            request.url,
            headers=request.headers,
            json=request.body,
        )
        if response.status_code >= 400 and response.status_code not in request.ok_statuses:
            response.raise_for_status()
        return RawResponse(
            request=request,
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )
