"""Error taxonomy shared by the resilience layer, the adapters and validation."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx


class SourceErrorType(str, Enum):
    AUTH = "auth_error"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network_error"
    INVALID_REQUEST = "invalid_request"
    SERVER = "server_error"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown_error"
    VALIDATION = "validation_error"


RETRYABLE_ERRORS = frozenset(
    {
        SourceErrorType.RATE_LIMIT,
        SourceErrorType.TIMEOUT,
        SourceErrorType.NETWORK,
        SourceErrorType.SERVER,
    }
)


class RegfeedError(Exception):
    """Base class for every error raised by regfeed."""


class SourceError(RegfeedError):
    """A failed upstream call, tagged with its taxonomy type."""

    def __init__(
        self,
        error_type: SourceErrorType,
        message: str,
        *,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.source = source
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.error_type in RETRYABLE_ERRORS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type.value,
            "message": self.message,
            "source": self.source,
            "status_code": self.status_code,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"SourceError({self.error_type.value!r}, {self.message!r})"


class CircuitOpenError(SourceError):
    """Raised without any network I/O while a breaker is open."""

    def __init__(self, message: str, *, source: Optional[str] = None, retry_in: Optional[float] = None):
        super().__init__(SourceErrorType.CIRCUIT_OPEN, message, source=source)
        self.retry_in = retry_in


class DeadlineExceededError(SourceError):
    """The caller's deadline passed; retrying cannot help."""

    def __init__(self, message: str, *, source: Optional[str] = None):
        super().__init__(SourceErrorType.TIMEOUT, message, source=source)


class AlertValidationError(RegfeedError):
    """A normalized alert candidate failed schema validation."""

    error_type = SourceErrorType.VALIDATION

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


def classify_status(status_code: int) -> SourceErrorType:
    if status_code in (401, 403):
        return SourceErrorType.AUTH
    if status_code == 429:
        return SourceErrorType.RATE_LIMIT
    if 400 <= status_code < 500:
        return SourceErrorType.INVALID_REQUEST
    if status_code >= 500:
        return SourceErrorType.SERVER
    return SourceErrorType.UNKNOWN


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds form of a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def classify_exception(exc: BaseException, source: Optional[str] = None) -> SourceError:
    """Map an arbitrary exception raised during a request onto the taxonomy."""
    if isinstance(exc, SourceError):
        if exc.source is None:
            exc.source = source
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return SourceError(
            classify_status(response.status_code),
            f"HTTP {response.status_code} from upstream",
            source=source,
            status_code=response.status_code,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )

    # httpx.TimeoutException subclasses TransportError, so it is checked first
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return SourceError(SourceErrorType.TIMEOUT, "request timed out", source=source)

    if isinstance(exc, httpx.TransportError):
        return SourceError(SourceErrorType.NETWORK, f"network error: {exc!r}", source=source)

    return SourceError(SourceErrorType.UNKNOWN, f"{type(exc).__name__}: {exc}", source=source)
