"""Request/response envelopes passed between adapters and the resilience policy."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import quote, urlencode

from pydantic import BaseModel, Field

ResponseKind = Literal["json", "rss"]


def build_url(base_url: str, params: Optional[Dict[str, Any]] = None, safe: str = "") -> str:
    """Append an encoded query string; None values are dropped.

    ``safe`` lists characters kept literal, e.g. openFDA needs ``+:[]*`` untouched.
    """
    if not params:
        return base_url
    items = [(k, str(v)) for k, v in params.items() if v is not None]
    if not items:
        return base_url
    query = urlencode(items, quote_via=quote, safe=safe)
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


class SourceRequest(BaseModel):
    method: str = "GET"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None
    kind: ResponseKind = "json"
    label: Optional[str] = None  # endpoint name for logs and per-request errors
    ok_statuses: List[int] = Field(default_factory=list)  # non-2xx codes that mean "no results"

    @property
    def cache_key(self) -> str:
        body = json.dumps(self.body, sort_keys=True, separators=(",", ":")) if self.body is not None else ""
        return f"{self.method.upper()} {self.url} {body}".rstrip()


class RawResponse(BaseModel):
    request: SourceRequest
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    text: str = ""
    from_cache: bool = False

    def json_body(self) -> Any:
        if not self.text.strip():
            return None
        return json.loads(self.text)
