"""Regulations.gov v4 document search and detail."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from regfeed.core.config import settings
from regfeed.extract.classify import classify_urgency
from regfeed.extract.dates import format_day
from regfeed.ingestion.base import BaseSourceAdapter, SourceFilter, SourceResult
from regfeed.resilience.config import (
    AdapterConfig,
    AuthConfig,
    CacheConfig,
    CircuitBreakerConfig,
    RateLimitConfig,
    RetryConfig,
)
from regfeed.schemas.alert import AlertSource
from regfeed.schemas.raw import RegulationsGovRecord, SourceRecord
from regfeed.schemas.requests import RawResponse, SourceRequest, build_url

DOCUMENT_URL = "https://www.regulations.gov/document/{id}"

# The API rejects page sizes outside this range
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 250


def _flatten(item: Dict[str, Any]) -> Dict[str, Any]:
    """JSON:API resource -> flat dict of id plus attributes."""
    attributes = item.get("attributes") or {}
    return {**attributes, "id": item.get("id")}


def _urgency(item: Dict[str, Any]) -> str:
    attributes = item.get("attributes") or {}
    return classify_urgency(attributes.get("title"), attributes.get("summary"))


def _link(item: Dict[str, Any]) -> Optional[str]:
    document_id = item.get("id")
    return DOCUMENT_URL.format(id=document_id) if document_id else None


class RegulationsGovAdapter(BaseSourceAdapter):
    """Document search over the Regulations.gov API or a proxy exposing the same contract."""

    source = AlertSource.REGULATIONS_GOV
    name = "regulations_gov"

    def __init__(self, config: Optional[AdapterConfig] = None, *, base_url: Optional[str] = None, **kwargs: Any):
        super().__init__(config, **kwargs)
        self.base_url = (base_url or settings.REGULATIONS_GOV_BASE_URL).rstrip("/")

    @classmethod
    def default_config(cls) -> AdapterConfig:
        auth = AuthConfig()
        if settings.REGULATIONS_GOV_API_KEY:
            auth = AuthConfig(type="api_key", header_name="X-Api-Key", credential=settings.REGULATIONS_GOV_API_KEY)
        return AdapterConfig(
            auth=auth,
            rate_limit=RateLimitConfig(requests_per_minute=50, burst=10),
            retry=RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0),
            cache=CacheConfig(ttl_seconds=600),
            circuit_breaker=CircuitBreakerConfig(failure_threshold=5, reset_timeout_seconds=120),
            timeout_seconds=30.0,
            user_agent=settings.HTTP_USER_AGENT,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.api+json"}
        self.apply_auth({}, headers)
        return headers

    def build_request(self, filter: SourceFilter) -> SourceRequest:
        page_size = min(max(filter.limit, MIN_PAGE_SIZE), MAX_PAGE_SIZE)
        params: Dict[str, Any] = {
            "filter[searchTerm]": filter.keyword,
            "filter[agencyId]": filter.program.upper() if filter.program else None,
            "filter[documentType]": filter.document_type,
            "filter[postedDate][ge]": format_day(filter.window_start(self._now())),
            "filter[postedDate][le]": format_day(filter.date_to) if filter.date_to else None,
            "page[size]": page_size,
            "page[number]": filter.skip // page_size + 1,
            "sort": "-postedDate",
        }
        return SourceRequest(
            url=build_url(f"{self.base_url}/documents", params, safe="[]"),
            headers=self._headers(),
            label="regulations_gov:documents",
        )

    def normalize(self, response: RawResponse) -> List[SourceRecord]:
        body = response.json_body()
        if not isinstance(body, dict) or "data" not in body:
            raise ValueError("Regulations.gov response has no data member")
        data = body["data"]
        items = [data] if isinstance(data, dict) else data or []
        return self._parse_items(items, RegulationsGovRecord, fields=_flatten, urgency=_urgency, link=_link)

    async def search_documents(self, filter: Optional[SourceFilter] = None) -> SourceResult:
        return await self.fetch(filter)

    async def get_document(self, document_id: str) -> SourceResult:
        """Single document by id, e.g. ``FDA-2024-N-0001-0001``."""
        request = SourceRequest(
            url=f"{self.base_url}/documents/{quote(document_id, safe='')}",
            headers=self._headers(),
            label="regulations_gov:document",
        )
        return await self.run_requests([request], SourceFilter())
