"""Abstract source adapter interface for ingestion."""

from __future__ import annotations

import asyncio
import base64
import random
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

import httpx
from pydantic import BaseModel, Field, ValidationError

from regfeed.core.config import settings
from regfeed.core.errors import SourceError, SourceErrorType, classify_exception
from regfeed.core.logging import get_logger, sanitize_url
from regfeed.resilience.cache import ResponseCache
from regfeed.resilience.config import AdapterConfig
from regfeed.resilience.policy import ResiliencePolicy
from regfeed.schemas.alert import AlertSource
from regfeed.schemas.raw import LenientDatetime, SourceRecord, SourceRecordBase
from regfeed.schemas.requests import RawResponse, SourceRequest

log = get_logger("ingestion.base")

__all__ = [
    "AdapterConfig",
    "BaseSourceAdapter",
    "SourceErrorInfo",
    "SourceFilter",
    "SourceResult",
]


class SourceFilter(BaseModel):
    """Agency-agnostic query; each adapter translates what it supports."""

    keyword: Optional[str] = None
    date_from: LenientDatetime = None
    date_to: LenientDatetime = None
    days: int = Field(default_factory=lambda: settings.INGEST_LOOKBACK_DAYS, ge=1)
    program: Optional[str] = None  # agency, program or endpoint selector
    state: Optional[str] = None
    document_type: Optional[str] = None
    classification: Optional[str] = None
    limit: int = Field(100, ge=1, le=1000)
    skip: int = Field(0, ge=0)

    def window_start(self, now: datetime) -> datetime:
        return self.date_from or now - timedelta(days=self.days)


class SourceErrorInfo(BaseModel):
    type: SourceErrorType
    message: str
    status_code: Optional[int] = None
    retryable: bool = False
    request: Optional[str] = None

    @classmethod
    def from_error(cls, error: SourceError, request: Optional[str] = None) -> "SourceErrorInfo":
        return cls(
            type=error.error_type,
            message=sanitize_url(error.message),
            status_code=error.status_code,
            retryable=error.retryable,
            request=request,
        )


class SourceResult(BaseModel):
    source: AlertSource
    success: bool = True
    records: List[SourceRecord] = Field(default_factory=list)
    errors: List[SourceErrorInfo] = Field(default_factory=list)
    requests: int = 0
    cache_hits: int = 0

    @property
    def error(self) -> Optional[str]:
        if not self.errors:
            return None
        return "; ".join(f"{e.type.value}: {e.message}" for e in self.errors)


class BaseSourceAdapter(ABC):
    """One agency source: builds requests, runs them through its own
    resilience policy and turns responses into typed records.

    Instances keep mutable limiter/breaker/cache state, so concurrent
    ``fetch`` calls on the same adapter are serialized by a lock.
    """

    source: AlertSource
    name: str

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or self.default_config()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=transport,
            follow_redirects=True,
            headers={"User-Agent": self.config.user_agent},
        )
        self.policy = ResiliencePolicy(
            self.config,
            self.client,
            cache=cache,
            clock=clock,
            sleep=sleep,
            rng=rng,
            name=self.name,
        )
        self._clock = clock
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()

    @classmethod
    def default_config(cls) -> AdapterConfig:
        return AdapterConfig(user_agent=settings.HTTP_USER_AGENT)

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------
    @abstractmethod
    def build_request(self, filter: SourceFilter) -> SourceRequest:
        """Translate ``filter`` into one source-specific request."""

    def build_requests(self, filter: SourceFilter) -> List[SourceRequest]:
        return [self.build_request(filter)]

    def apply_auth(self, params: Dict[str, Any], headers: Dict[str, str]) -> None:
        """Add credentials from ``config.auth`` to query params or headers."""
        auth = self.config.auth
        if auth.type == "none" or not auth.credential:
            return
        if auth.type == "api_key":
            if auth.key_param:
                params[auth.key_param] = auth.credential
            if auth.header_name:
                headers[auth.header_name] = auth.credential
        elif auth.type == "bearer":
            headers["Authorization"] = f"Bearer {auth.credential}"
        elif auth.type == "basic":
            userpass = auth.credential if ":" in auth.credential else f"{auth.credential}:"
            headers["Authorization"] = "Basic " + base64.b64encode(userpass.encode("utf-8")).decode("ascii")

    # -------------------------------------------------------------------------
    # Response parsing
    # -------------------------------------------------------------------------
    @abstractmethod
    def normalize(self, response: RawResponse) -> List[SourceRecord]:
        """Extract the result items from the envelope as typed records."""

    def filter_records(self, records: List[SourceRecord], filter: SourceFilter) -> List[SourceRecord]:
        """Client-side narrowing applied after ``normalize``."""
        return records

    def _parse_items(
        self,
        items: Iterable[Dict[str, Any]],
        model: Type[SourceRecordBase],
        fields: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
        **derived: Callable[[Dict[str, Any]], Any],
    ) -> List[SourceRecord]:
        """Validate items into ``model``; malformed items are logged and skipped.

        ``fields`` reshapes an item before validation (the item itself stays
        the payload); each ``derived`` callable computes one extra field.
        """
        records: List[SourceRecord] = []
        for item in items:
            if not isinstance(item, dict):
                log.warning(f"{self.name}: skipping non-object item {item!r:.80}")
                continue
            try:
                data = fields(item) if fields else item
                extra = {key: fn(item) for key, fn in derived.items()}
                records.append(model.model_validate({**data, **extra, "payload": item}))
            except ValidationError as exc:
                log.warning(f"{self.name}: skipping malformed {model.__name__}: {exc.error_count()} error(s)")
            except (TypeError, AttributeError, ValueError) as exc:
                # Wrong JSON shape inside one item, e.g. a list where an object belongs
                log.warning(f"{self.name}: skipping unreadable {model.__name__}: {exc!r:.200}")
        return records

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------
    async def fetch(self, filter: Optional[SourceFilter] = None, deadline: Optional[float] = None) -> SourceResult:
        """Fetch and parse every request for ``filter``.

        Never raises SourceError: failures are reported in ``errors`` and the
        result is unsuccessful only when every request failed.
        """
        filter = filter or SourceFilter()
        try:
            requests = self.build_requests(filter)
        except ValueError as exc:
            error = SourceError(SourceErrorType.INVALID_REQUEST, str(exc), source=self.name)
            return SourceResult(source=self.source, success=False, errors=[SourceErrorInfo.from_error(error)])
        return await self.run_requests(requests, filter, deadline)

    async def run_requests(
        self,
        requests: List[SourceRequest],
        filter: SourceFilter,
        deadline: Optional[float] = None,
    ) -> SourceResult:
        result = SourceResult(source=self.source, requests=len(requests))
        async with self._lock:
            for request in requests:
                label = request.label or sanitize_url(request.url)
                try:
                    response = await self.policy.execute(request, deadline)
                except SourceError as exc:
                    log.warning(f"{self.name} request {label} failed: {exc.error_type.value}: {exc.message}")
                    result.errors.append(SourceErrorInfo.from_error(exc, label))
                    continue

                if response.from_cache:
                    result.cache_hits += 1
                try:
                    records = self.normalize(response)
                except (ValueError, TypeError, AttributeError) as exc:
                    # Undecodable body or unexpected envelope; never serve it again from cache
                    self.policy.evict(request)
                    error = classify_exception(exc, source=self.name)
                    log.error(f"{self.name} could not parse response from {label}: {exc!r}")
                    result.errors.append(SourceErrorInfo.from_error(error, label))
                    continue

                result.records.extend(self.filter_records(records, filter))

        result.success = not requests or len(result.errors) < len(requests)
        log.info(
            f"Source={self.name} requests={len(requests)} records={len(result.records)} "
            f"errors={len(result.errors)} cache_hits={result.cache_hits}"
        )
        return result

    # -------------------------------------------------------------------------
    # Lifecycle / health
    # -------------------------------------------------------------------------
    def health(self) -> Dict[str, Any]:
        snapshot = self.policy.breaker.snapshot()
        return {
            "source": self.source.value,
            "available": not snapshot["circuit_open"],
            **snapshot,
            "cache_entries": len(self.policy.cache) if self.policy.cache is not None else 0,
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
