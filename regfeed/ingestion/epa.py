"""EPA enforcement actions mined from EPA news release RSS feeds."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from regfeed.core.config import settings
from regfeed.core.logging import get_logger
from regfeed.extract.locations import extract_state, state_to_region
from regfeed.extract.text import (
    clean_text,
    determine_action_type,
    determine_significance,
    extract_defendant,
    extract_environmental_media,
    extract_facility,
    extract_penalty_amount,
    extract_violations,
    is_enforcement_item,
)
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
from regfeed.schemas.raw import EPARecord, SourceRecord
from regfeed.schemas.requests import RawResponse, SourceRequest

log = get_logger("ingestion.epa")

EPA_FEEDS = (
    "https://www.epa.gov/newsreleases/rss.xml",
    "https://www.epa.gov/enforcement/rss.xml",
)

SEARCH_WINDOW_DAYS = 90

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def derive_enforcement_fields(item: Dict[str, Any]) -> Dict[str, Any]:
    """Structured enforcement facts recovered from a news item's free text."""
    title = clean_text(item.get("title"))
    description = clean_text(item.get("description"))
    text = f"{title} {description}"
    state = extract_state(text)
    return {
        "case_number": item.get("guid") or item.get("link"),
        "case_name": title,
        "summary": description or None,
        "action_type": determine_action_type(title, description),
        "significance": determine_significance(title, description),
        "penalty_amount": extract_penalty_amount(text),
        "environmental_media": extract_environmental_media(text),
        "state": state,
        "region": state_to_region(state),
        "defendant": extract_defendant(title, description),
        "facility": extract_facility(text),
        "violations": extract_violations(description),
    }


class EPAAdapter(BaseSourceAdapter):
    source = AlertSource.EPA
    name = "epa"

    def __init__(self, config: Optional[AdapterConfig] = None, *, feeds: Sequence[str] = EPA_FEEDS, **kwargs: Any):
        super().__init__(config, **kwargs)
        self.feeds = tuple(feeds)

    @classmethod
    def default_config(cls) -> AdapterConfig:
        return AdapterConfig(
            rate_limit=RateLimitConfig(requests_per_minute=10, burst=3),
            retry=RetryConfig(max_attempts=3, base_delay=2.0, max_delay=30.0),
            cache=CacheConfig(ttl_seconds=3600),
            circuit_breaker=CircuitBreakerConfig(failure_threshold=3, reset_timeout_seconds=300),
            timeout_seconds=30.0,
            user_agent=settings.HTTP_USER_AGENT,
        )

    def _feed_request(self, index: int, feed: str) -> SourceRequest:
        headers = {"Accept": "application/rss+xml, application/xml"}
        self.apply_auth({}, headers)
        return SourceRequest(url=feed, headers=headers, kind="rss", label=f"epa:feed:{index}")

    def build_request(self, filter: SourceFilter) -> SourceRequest:
        return self._feed_request(0, self.feeds[0])

    def build_requests(self, filter: SourceFilter) -> List[SourceRequest]:
        return [self._feed_request(index, feed) for index, feed in enumerate(self.feeds)]

    def normalize(self, response: RawResponse) -> List[SourceRecord]:
        items = parse_feed(response.text)
        enforcement = [
            item
            for item in items
            if is_enforcement_item(clean_text(item.get("title")), clean_text(item.get("description")))
        ]
        log.debug(f"EPA feed {response.request.label}: {len(enforcement)}/{len(items)} enforcement items")
        return self._parse_items(enforcement, EPARecord, fields=lambda item: {**item, **derive_enforcement_fields(item)})

    def filter_records(self, records: List[SourceRecord], filter: SourceFilter) -> List[SourceRecord]:
        since = filter.window_start(self._now())
        keyword = (filter.keyword or "").lower()
        state = (filter.state or "").upper()

        kept: List[SourceRecord] = []
        for record in records:
            if record.action_date is None or record.action_date < since:
                continue
            if filter.date_to is not None and record.action_date > filter.date_to:
                continue
            if keyword and keyword not in f"{record.case_name or ''} {record.summary or ''}".lower():
                continue
            if state and record.state != state:
                continue
            kept.append(record)
        return kept

    async def get_enforcement_actions(self, days: int = 30) -> SourceResult:
        return await self.fetch(SourceFilter(days=days))

    async def search(self, query: str, limit: int = 50) -> SourceResult:
        """Keyword match over the last 90 days of enforcement news, newest first."""
        result = await self.fetch(SourceFilter(days=SEARCH_WINDOW_DAYS, keyword=query))
        result.records = sorted(result.records, key=lambda r: r.action_date or _EPOCH, reverse=True)[:limit]
        return result
