from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class SourceHealthOut(BaseModel):
    source: str
    available: bool
    state: str
    circuit_open: bool
    failures: int
    retry_in_seconds: float
    cache_entries: int


class HealthResponse(BaseModel):
    status: str
    database: str
    sources: Dict[str, SourceHealthOut]


class IngestTriggerResponse(BaseModel):
    success: bool
    source: str
    records_fetched: int = 0
    records_processed: int = 0
    records_written: int = 0
    invalid: int = 0
    errors: List[Dict[str, Any]] = []
    error: Optional[str] = None
