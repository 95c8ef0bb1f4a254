"""Validation and in-batch deduplication of normalized alert candidates."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field, ValidationError

from regfeed.core.errors import AlertValidationError
from regfeed.core.logging import get_logger
from regfeed.schemas.alert import NormalizedAlert

log = get_logger("normalize.validation")


class InvalidCandidate(BaseModel):
    candidate: Any
    message: str
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class ValidationResult(BaseModel):
    valid: List[NormalizedAlert] = Field(default_factory=list)
    invalid: List[InvalidCandidate] = Field(default_factory=list)


def _summarize(errors: List[Dict[str, Any]]) -> str:
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ())) or "alert"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


def validate_alert(candidate: Any) -> NormalizedAlert:
    """Build a NormalizedAlert or raise AlertValidationError."""
    if isinstance(candidate, NormalizedAlert):
        return candidate
    try:
        return NormalizedAlert.model_validate(candidate)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        raise AlertValidationError(_summarize(errors), errors=errors) from exc


def validate_batch(candidates: Iterable[Any]) -> ValidationResult:
    """Partition candidates into valid alerts and rejected inputs.

    Each candidate is validated on its own so one bad record never affects
    its siblings.
    """
    result = ValidationResult()
    for index, candidate in enumerate(candidates):
        try:
            result.valid.append(validate_alert(candidate))
        except AlertValidationError as exc:
            log.warning(f"Rejected alert candidate #{index}: {exc}")
            result.invalid.append(InvalidCandidate(candidate=candidate, message=str(exc), errors=exc.errors))
        except Exception as exc:  # noqa: BLE001
            log.error(f"Unexpected error validating alert candidate #{index}: {exc!r}")
            result.invalid.append(InvalidCandidate(candidate=candidate, message=repr(exc)))
    return result


def dedupe_alerts(alerts: Iterable[NormalizedAlert]) -> List[NormalizedAlert]:
    """Keep the first alert per hash, preserving order."""
    seen: set[str] = set()
    unique: List[NormalizedAlert] = []
    for alert in alerts:
        if alert.hash in seen:
            continue
        seen.add(alert.hash)
        unique.append(alert)
    return unique
