"""CDC source: outbreak investigations (Socrata data API) and health advisory RSS feeds."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from regfeed.core.config import settings
from regfeed.extract.dates import format_day
from regfeed.ingestion.base import BaseSourceAdapter, SourceFilter, SourceResult
from regfeed.ingestion.rss import parse_feed
from regfeed.resilience.config import (
    AdapterConfig,
    CacheConfig,
    CircuitBreakerConfig,
    RateLimitConfig,
    RetryConfig,
)
from regfeed.schemas.alert import AlertSource
from regfeed.schemas.raw import CDCAdvisoryRecord, CDCOutbreakRecord, SourceRecord
from regfeed.schemas.requests import RawResponse, SourceRequest, build_url

OUTBREAKS_URL = "https://data.cdc.gov/resource/5uma-a6sb.json"
ADVISORY_FEEDS = (
    "https://tools.cdc.gov/api/v2/resources/media/132608.rss",
    "https://tools.cdc.gov/api/v2/resources/media/132609.rss",
)
PROGRAMS = ("outbreaks", "advisories")

SEARCH_WINDOW_DAYS = 90

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _record_date(record: SourceRecord) -> Optional[datetime]:
    if isinstance(record, CDCOutbreakRecord):
        return record.date_published
    return record.pub_date


def _record_text(record: SourceRecord) -> str:
    if isinstance(record, CDCOutbreakRecord):
        parts = [record.title, record.summary, record.pathogen, *record.food_vehicle]
    else:
        parts = [record.title, record.description]
    return " ".join(p for p in parts if p).lower()


class CDCAdapter(BaseSourceAdapter):
    source = AlertSource.CDC
    name = "cdc"

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        *,
        outbreaks_url: str = OUTBREAKS_URL,
        advisory_feeds: Sequence[str] = ADVISORY_FEEDS,
        **kwargs: Any,
    ):
        super().__init__(config, **kwargs)
        self.outbreaks_url = outbreaks_url
        self.advisory_feeds = tuple(advisory_feeds)

    @classmethod
    def default_config(cls) -> AdapterConfig:
        return AdapterConfig(
            rate_limit=RateLimitConfig(requests_per_minute=30, burst=5),
            retry=RetryConfig(max_attempts=3, base_delay=1.0, max_delay=15.0),
            cache=CacheConfig(ttl_seconds=1800),
            circuit_breaker=CircuitBreakerConfig(failure_threshold=5, reset_timeout_seconds=120),
            timeout_seconds=30.0,
            user_agent=settings.HTTP_USER_AGENT,
        )

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------
    def build_request(self, filter: SourceFilter) -> SourceRequest:
        """Outbreak investigations started inside the look-back window."""
        params = {
            "$where": f"investigation_start_date >= '{format_day(filter.window_start(self._now()))}'",
            "$limit": filter.limit,
            "$offset": filter.skip or None,
            "$order": "investigation_start_date DESC",
        }
        headers = {"Accept": "application/json"}
        self.apply_auth(params, headers)
        return SourceRequest(url=build_url(self.outbreaks_url, params), headers=headers, label="cdc:outbreaks")

    def advisory_requests(self) -> List[SourceRequest]:
        return [
            SourceRequest(
                url=feed,
                headers={"Accept": "application/rss+xml, application/xml"},
                kind="rss",
                label=f"cdc:advisories:{index}",
            )
            for index, feed in enumerate(self.advisory_feeds)
        ]

    def build_requests(self, filter: SourceFilter) -> List[SourceRequest]:
        program = (filter.program or "").strip().lower()
        if program and program not in PROGRAMS:
            raise ValueError(f"Unsupported CDC program: {filter.program}. Must be one of: {', '.join(PROGRAMS)}")
        requests: List[SourceRequest] = []
        if program in ("", "outbreaks"):
            requests.append(self.build_request(filter))
        if program in ("", "advisories"):
            requests.extend(self.advisory_requests())
        return requests

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------
    def normalize(self, response: RawResponse) -> List[SourceRecord]:
        if response.request.kind == "rss":
            return self._parse_items(parse_feed(response.text), CDCAdvisoryRecord)

        body = response.json_body()
        if not isinstance(body, list):
            raise ValueError("CDC outbreak response is not a list")
        return self._parse_items(body, CDCOutbreakRecord)

    def filter_records(self, records: List[SourceRecord], filter: SourceFilter) -> List[SourceRecord]:
        since = filter.window_start(self._now())
        keyword = (filter.keyword or "").lower()

        kept: List[SourceRecord] = []
        for record in records:
            published = _record_date(record)
            if published is None or published < since:
                continue
            if filter.date_to is not None and published > filter.date_to:
                continue
            if keyword and keyword not in _record_text(record):
                continue
            kept.append(record)
        return kept

    # -------------------------------------------------------------------------
    # Convenience queries
    # -------------------------------------------------------------------------
    async def get_recent_outbreaks(self, days: int = 30, limit: int = 100) -> SourceResult:
        return await self.fetch(SourceFilter(days=days, limit=limit, program="outbreaks"))

    async def get_health_advisories(self, days: int = 30) -> SourceResult:
        """Advisory RSS items published within the last ``days``."""
        return await self.fetch(SourceFilter(days=days, program="advisories"))

    async def search(self, query: str, limit: int = 50) -> SourceResult:
        """Keyword match over the last 90 days of outbreaks and advisories, newest first."""
        result = await self.fetch(SourceFilter(days=SEARCH_WINDOW_DAYS, keyword=query, limit=max(limit, 100)))
        result.records = sorted(result.records, key=lambda r: _record_date(r) or _EPOCH, reverse=True)[:limit]
        return result
