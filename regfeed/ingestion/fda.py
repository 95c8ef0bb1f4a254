"""openFDA enforcement, adverse event and drug shortage source."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from regfeed.core.config import settings
from regfeed.core.logging import get_logger
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
from regfeed.schemas.raw import FDARecord, SourceRecord
from regfeed.schemas.requests import RawResponse, SourceRequest, build_url

log = get_logger("ingestion.fda")

FDA_BASE_URL = "https://api.fda.gov"

# program -> (path, date field used for range queries and sorting)
ENDPOINTS: Dict[str, tuple[str, str]] = {
    "food": ("/food/enforcement.json", "recall_initiation_date"),
    "drug": ("/drug/enforcement.json", "recall_initiation_date"),
    "device": ("/device/enforcement.json", "recall_initiation_date"),
    "food_event": ("/food/event.json", "date_created"),
    "drug_event": ("/drug/event.json", "receivedate"),
    "animal_event": ("/animal/event.json", "original_receive_date"),
    "drug_shortage": ("/drug/shortages.json", "update_date"),
}
DEFAULT_PROGRAMS = ("food", "drug", "device")
SHORTAGE_PROGRAM = "drug_shortage"

# Field the keyword phrase is matched against; enforcement fields by default
KEYWORD_FIELDS = {SHORTAGE_PROGRAM: "generic_name"}

# openFDA reads "+" as a space and needs the range/phrase syntax unescaped
_QUERY_SAFE = '+:[]*"'


def _phrase(value: str) -> str:
    return "+".join(value.replace('"', "").split())


def _event_product_name(item: Dict[str, Any]) -> Optional[str]:
    """First product named in a drug or food adverse event report."""
    drugs = (item.get("patient") or {}).get("drug") or []
    if drugs and isinstance(drugs[0], dict) and drugs[0].get("medicinalproduct"):
        return drugs[0]["medicinalproduct"]
    products = item.get("products") or []
    if products and isinstance(products[0], dict) and products[0].get("name_brand"):
        return products[0]["name_brand"]
    return item.get("medicinalproduct")


def _event_id(item: Dict[str, Any]) -> Optional[str]:
    return item.get("safetyreportid") or item.get("report_number") or item.get("event_id")


def _shortage_id(item: Dict[str, Any]) -> Optional[str]:
    """Shortage entries carry no id; the package NDC is the closest stable key."""
    if item.get("package_ndc"):
        return item["package_ndc"]
    name = item.get("generic_name") or item.get("product_name")
    if not name:
        return None
    form = item.get("dosage_form")
    return f"{name} {form}" if isinstance(form, str) and form else name


class FDAAdapter(BaseSourceAdapter):
    """Fetches recalls from openFDA enforcement endpoints (event and shortage endpoints on request)."""

    source = AlertSource.FDA
    name = "fda"

    def __init__(self, config: Optional[AdapterConfig] = None, *, base_url: str = FDA_BASE_URL, **kwargs: Any):
        super().__init__(config, **kwargs)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def default_config(cls) -> AdapterConfig:
        auth = AuthConfig()
        if settings.FDA_API_KEY:
            auth = AuthConfig(type="api_key", key_param="api_key", credential=settings.FDA_API_KEY)
        return AdapterConfig(
            auth=auth,
            rate_limit=RateLimitConfig(requests_per_minute=40, burst=10),
            retry=RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0),
            cache=CacheConfig(ttl_seconds=300),
            circuit_breaker=CircuitBreakerConfig(failure_threshold=5, reset_timeout_seconds=60),
            timeout_seconds=30.0,
            user_agent=settings.HTTP_USER_AGENT,
        )

    def programs(self, filter: SourceFilter) -> List[str]:
        if not filter.program:
            return list(DEFAULT_PROGRAMS)
        program = filter.program.strip().lower()
        if program not in ENDPOINTS:
            raise ValueError(f"Unsupported FDA program: {filter.program}. Must be one of: {', '.join(ENDPOINTS)}")
        return [program]

    def build_search(self, filter: SourceFilter, date_field: str, keyword_field: str = "product_description") -> str:
        """``field:"value"`` clauses joined with ``+AND+``."""
        now = self._now()
        start = format_day(filter.window_start(now), compact=True)
        end = format_day(filter.date_to or now, compact=True)

        clauses = [f"{date_field}:[{start}+TO+{end}]"]
        if filter.keyword:
            clauses.append(f'{keyword_field}:"{_phrase(filter.keyword)}"')
        if filter.classification:
            clauses.append(f'classification:"{_phrase(filter.classification)}"')
        if filter.state:
            clauses.append(f'state:"{_phrase(filter.state.upper())}"')
        return "+AND+".join(clauses)

    def _request_for(self, program: str, filter: SourceFilter) -> SourceRequest:
        path, date_field = ENDPOINTS[program]
        params: Dict[str, Any] = {
            "search": self.build_search(filter, date_field, KEYWORD_FIELDS.get(program, "product_description")),
            "limit": filter.limit,
            "skip": filter.skip or None,
            "sort": f"{date_field}:desc",
        }
        headers = {"Accept": "application/json"}
        self.apply_auth(params, headers)
        return SourceRequest(
            url=build_url(f"{self.base_url}{path}", params, safe=_QUERY_SAFE),
            headers=headers,
            label=f"fda:{program}",
            # openFDA answers 404 when a search matches nothing
            ok_statuses=[404],
        )

    def build_request(self, filter: SourceFilter) -> SourceRequest:
        return self._request_for(self.programs(filter)[0], filter)

    def build_requests(self, filter: SourceFilter) -> List[SourceRequest]:
        return [self._request_for(program, filter) for program in self.programs(filter)]

    def normalize(self, response: RawResponse) -> List[SourceRecord]:
        if response.status_code == 404:
            return []
        body = response.json_body()
        if not isinstance(body, dict):
            raise ValueError("openFDA response is not an object")
        program = (response.request.label or "fda:").split(":", 1)[1] or None
        return self._parse_items(
            body.get("results") or [],
            FDARecord,
            endpoint=lambda _item: program,
            event_id=_event_id,
            medicinalproduct=_event_product_name,
            shortage_id=_shortage_id,
        )

    async def get_recent_recalls(self, days: int = 30, limit: int = 100) -> SourceResult:
        """Food, drug and device recalls initiated within ``days``."""
        return await self.fetch(SourceFilter(days=days, limit=limit))

    async def get_drug_shortages(self, days: int = 90, limit: int = 100) -> SourceResult:
        """Drug shortage entries updated within ``days``."""
        return await self.fetch(SourceFilter(days=days, limit=limit, program=SHORTAGE_PROGRAM))
