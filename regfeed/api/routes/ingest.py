"""Ingest routes - trigger ingestion for one or all sources."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from regfeed.api.deps import get_db, get_registry
from regfeed.core.logging import get_logger
from regfeed.ingestion.base import SourceFilter
from regfeed.ingestion.registry import SourceAdapterRegistry, SourceName
from regfeed.schemas.api import IngestTriggerResponse
from regfeed.services.ingest_service import IngestService
from regfeed.storage.upsert import SqlAlchemyAlertSink

router = APIRouter(prefix="/ingest", tags=["ingest"])
log = get_logger("ingest_routes")


def _service(registry: SourceAdapterRegistry, db: Optional[Session]) -> IngestService:
    return IngestService(registry, SqlAlchemyAlertSink(db) if db is not None else None)


@router.post("/run/{source}", response_model=IngestTriggerResponse)
async def trigger_ingest(
    source: SourceName,
    days: Optional[int] = None,
    keyword: Optional[str] = None,
    db: Optional[Session] = Depends(get_db),
    registry: SourceAdapterRegistry = Depends(get_registry),
):
    """
    Trigger ingestion for a specific source.

    1. Fetch through the source adapter (rate limit, retry, circuit breaker, cache)
    2. Map records to normalized alerts
    3. Validate and dedupe
    4. Upsert (when a database is configured)
    """
    log.info(f"Ingestion triggered for source: {source}")
    filter = SourceFilter(keyword=keyword, **({"days": days} if days else {}))

    try:
        result = await _service(registry, db).run(source, filter)
        return IngestTriggerResponse(**result)
    except Exception as exc:  # noqa: BLE001
        log.error(f"Ingestion failed for {source}: {exc}")
        return IngestTriggerResponse(success=False, source=source, error=str(exc))


@router.post("/run-all")
async def trigger_ingest_all(
    db: Optional[Session] = Depends(get_db),
    registry: SourceAdapterRegistry = Depends(get_registry),
):
    """
    Trigger ingestion for every configured source, concurrently.
    """
    log.info("Ingestion triggered for all sources")
    results = await _service(registry, db).run_all()
    return {
        "success": all(r.get("success", False) for r in results.values()),
        "results": results,
    }
