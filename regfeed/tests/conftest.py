"""Shared fixtures: a controllable clock and mock HTTP transports."""

from datetime import datetime, timezone
from typing import Callable, Dict, List

import httpx
import pytest

from regfeed.resilience.config import (
    AdapterConfig,
    CacheConfig,
    CircuitBreakerConfig,
    RateLimitConfig,
    RetryConfig,
)

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def sequence_handler(responses: List[httpx.Response]) -> Callable[[httpx.Request], httpx.Response]:
    """Serve copies of ``responses`` in order, repeating the last one."""
    state: Dict[str, int] = {"index": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        index = min(state["index"], len(responses) - 1)
        state["index"] += 1
        template = responses[index]
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)

    return handler


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fixed_now():
    return lambda: FIXED_NOW


@pytest.fixture
def fast_config():
    """Deterministic config: no jitter, generous rate limit, small breaker."""
    return AdapterConfig(
        rate_limit=RateLimitConfig(requests_per_minute=600, burst=100),
        retry=RetryConfig(max_attempts=3, base_delay=1.0, max_delay=8.0, exponential_base=2.0, jitter=False),
        cache=CacheConfig(enabled=True, ttl_seconds=60),
        circuit_breaker=CircuitBreakerConfig(failure_threshold=2, reset_timeout_seconds=30),
        timeout_seconds=5.0,
    )
