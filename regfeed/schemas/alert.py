"""Normalized alert model shared by every source."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_serializer,
    field_validator,
    model_validator,
)

from regfeed.extract.dates import parse_datetime
from regfeed.normalize.hashing import canonical_timestamp, compute_alert_hash, normalize_external_id, source_value


class AlertSource(str, Enum):
    FDA = "FDA"
    FSIS = "FSIS"
    CDC = "CDC"
    EPA = "EPA"
    REGULATIONS_GOV = "REGULATIONS_GOV"


class AlertCategory(str, Enum):
    RECALL = "recall"
    OUTBREAK = "outbreak"
    ENFORCEMENT = "enforcement"
    ADVISORY = "advisory"
    ADVERSE_EVENT = "adverse_event"


_HTTP_URL = TypeAdapter(AnyHttpUrl)


class NormalizedAlert(BaseModel):
    """One regulatory announcement in the unified feed.

    ``hash`` is filled from (source, external_id, date_updated or
    date_published) when absent; a supplied hash must equal that value.
    In JSON output both dates use the same canonical form as the hash input,
    so the hash can be recomputed from a serialized alert.
    """

    model_config = ConfigDict(frozen=True)

    external_id: str = Field(min_length=1)
    source: AlertSource
    title: str = Field(min_length=1)
    summary: Optional[str] = None
    link_url: Optional[str] = None
    date_published: datetime
    date_updated: Optional[datetime] = None
    jurisdiction: Optional[str] = None
    locations: List[str] = Field(default_factory=list)
    product_types: List[str] = Field(default_factory=list)
    category: Optional[AlertCategory] = None
    severity: Optional[int] = Field(None, ge=0, le=100)
    raw: Dict[str, Any] = Field(default_factory=dict)
    hash: str = Field(pattern=r"^[0-9a-f]{64}$")

    @model_validator(mode="before")
    @classmethod
    def _fill_hash(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        source = data.get("source")
        external_id = normalize_external_id(data.get("external_id"))
        published = parse_datetime(data.get("date_published"))
        if not source or not external_id or published is None:
            # Field validation reports what is missing
            return data
        try:
            source = AlertSource(source_value(source)).value
        except ValueError:
            return data

        expected = compute_alert_hash(source, external_id, data.get("date_updated"), published)
        supplied = data.get("hash")
        if supplied and supplied != expected:
            raise ValueError("hash does not match source, external_id and timestamp")
        return {**data, "hash": expected}

    @field_validator("external_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return normalize_external_id(value)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("summary", "jurisdiction", "link_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("link_url")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            _HTTP_URL.validate_python(value)
        return value

    @field_validator("date_published", "date_updated", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"unparseable date: {value!r}")
        return parsed

    @field_validator("locations", "product_types", mode="before")
    @classmethod
    def _as_sorted_set(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple, set, frozenset)):
            return sorted({str(v).strip() for v in value if v is not None and str(v).strip()})
        return value

    @field_serializer("date_published", "date_updated", when_used="json")
    def _serialize_dates(self, value: Optional[datetime]) -> Optional[str]:
        return canonical_timestamp(value) if value is not None else None
