"""Health routes - service and per-source circuit status."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from regfeed.api.deps import get_db, get_registry
from regfeed.ingestion.registry import SourceAdapterRegistry
from regfeed.schemas.api import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health(
    response: Response,
    db: Optional[Session] = Depends(get_db),
    registry: SourceAdapterRegistry = Depends(get_registry),
):
    """
    Health check for load balancers.

    Reports database connectivity (if configured) and the circuit breaker
    state of every source. Returns 503 if the database is unreachable;
    open circuits degrade the status but keep 200 so healthy sources still serve.
    """
    if db is None:
        db_status = "not_configured"
    else:
        try:
            db.execute(text("SELECT 1"))
            db_status = "ok"
        except SQLAlchemyError as e:
            db_status = f"down: {e}"
            response.status_code = 503

    sources = registry.health()
    status = "healthy" if all(s["available"] for s in sources.values()) else "degraded"
    return HealthResponse(status=status, database=db_status, sources=sources)


@router.get("/ready")
def readiness(response: Response, db: Optional[Session] = Depends(get_db)):
    """
    Readiness probe - 200 if ready, 503 if a configured database is unreachable.
    """
    now = datetime.now(timezone.utc).isoformat()
    if db is None:
        return {"status": "ready", "timestamp": now}
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": now}
    except SQLAlchemyError as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e), "timestamp": now}
