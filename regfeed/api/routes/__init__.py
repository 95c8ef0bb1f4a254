from regfeed.api.routes.health import router as health_router
from regfeed.api.routes.ingest import router as ingest_router

__all__ = ["health_router", "ingest_router"]
