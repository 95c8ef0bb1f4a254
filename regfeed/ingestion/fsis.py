"""USDA FSIS recall source."""

from __future__ import annotations

from typing import Any, List, Optional

from regfeed.core.config import settings
from regfeed.extract.dates import format_day
from regfeed.extract.locations import extract_locations
from regfeed.ingestion.base import BaseSourceAdapter, SourceFilter
from regfeed.resilience.config import (
    AdapterConfig,
    CacheConfig,
    CircuitBreakerConfig,
    RateLimitConfig,
    RetryConfig,
)
from regfeed.schemas.alert import AlertSource
from regfeed.schemas.raw import FSISRecord, SourceRecord
from regfeed.schemas.requests import RawResponse, SourceRequest, build_url

FSIS_RECALL_URL = "https://www.fsis.usda.gov/fsis/api/recall/v/1"


class FSISAdapter(BaseSourceAdapter):
    """FSIS publishes one recall list; date, keyword and state narrowing happen client-side."""

    source = AlertSource.FSIS
    name = "fsis"

    def __init__(self, config: Optional[AdapterConfig] = None, *, url: str = FSIS_RECALL_URL, **kwargs: Any):
        super().__init__(config, **kwargs)
        self.url = url

    @classmethod
    def default_config(cls) -> AdapterConfig:
        return AdapterConfig(
            rate_limit=RateLimitConfig(requests_per_minute=15, burst=5),
            retry=RetryConfig(max_attempts=3, base_delay=2.0, max_delay=20.0),
            cache=CacheConfig(ttl_seconds=900),
            circuit_breaker=CircuitBreakerConfig(failure_threshold=4, reset_timeout_seconds=180),
            timeout_seconds=30.0,
            user_agent=settings.HTTP_USER_AGENT,
        )

    def build_request(self, filter: SourceFilter) -> SourceRequest:
        params = {
            "fromDate": format_day(filter.window_start(self._now())),
            "limit": filter.limit,
        }
        headers = {"Accept": "application/json"}
        self.apply_auth(params, headers)
        return SourceRequest(url=build_url(self.url, params), headers=headers, label="fsis:recalls")

    def normalize(self, response: RawResponse) -> List[SourceRecord]:
        body = response.json_body()
        if isinstance(body, dict):
            body = body.get("recalls") or body.get("data") or []
        if not isinstance(body, list):
            raise ValueError("FSIS response is neither a list nor a recalls envelope")
        return self._parse_items(body, FSISRecord)

    def filter_records(self, records: List[SourceRecord], filter: SourceFilter) -> List[SourceRecord]:
        start = filter.window_start(self._now())
        keyword = (filter.keyword or "").lower()
        state = (filter.state or "").upper()

        kept: List[SourceRecord] = []
        for record in records:
            if record.recall_date is not None and record.recall_date < start:
                continue
            if filter.date_to is not None and record.recall_date is not None and record.recall_date > filter.date_to:
                continue
            if keyword and keyword not in f"{record.product_name or ''} {record.summary or ''}".lower():
                continue
            if state and state not in extract_locations(record.distribution_pattern):
                continue
            kept.append(record)
        return kept[: filter.limit]
