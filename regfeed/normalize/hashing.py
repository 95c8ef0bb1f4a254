"""Stable identity hashing for normalized alerts."""

from __future__ import annotations

import hashlib
import re
from datetime import timezone
from typing import Any, Optional

from regfeed.extract.dates import parse_datetime

_WS_RE = re.compile(r"\s+")


def normalize_external_id(external_id: Any) -> str:
    """Trim, uppercase and collapse internal whitespace of a source id."""
    if external_id is None:
        return ""
    return _WS_RE.sub(" ", str(external_id).strip().upper())


def canonical_timestamp(value: Any) -> str:
    """UTC ISO-8601 with second precision, e.g. ``2024-01-15T00:00:00+00:00``.

    Unparseable or empty values produce an empty string.
    """
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat(timespec="seconds")


def compute_alert_hash(
    source: str,
    external_id: Any,
    date_updated: Optional[Any] = None,
    date_published: Optional[Any] = None,
) -> str:
    """sha256 hex digest of ``source:normalized_id:timestamp``.

    The timestamp is ``date_updated`` when present, else ``date_published``.
    """
    timestamp = canonical_timestamp(date_updated) or canonical_timestamp(date_published)
    key = f"{source}:{normalize_external_id(external_id)}:{timestamp}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def source_value(source: Any) -> str:
    return getattr(source, "value", source)


def is_sha256_hex(value: Any) -> bool:
    return isinstance(value, str) and re.fullmatch(r"[0-9a-f]{64}", value) is not None
