from contextlib import asynccontextmanager

from fastapi import FastAPI

from regfeed.api.routes import health, ingest
from regfeed.core.config import settings
from regfeed.core.db import run_migrations
from regfeed.core.logging import get_logger
from regfeed.ingestion.registry import SourceAdapterRegistry

log = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(f"Starting application in {settings.ENV.upper()} mode")

    try:
        run_migrations()
    except Exception:
        log.exception("Failed to run migrations on startup")
        raise

    app.state.registry = SourceAdapterRegistry.from_settings()
    log.info(f"Source adapters ready: {', '.join(app.state.registry.sources())}")

    yield

    log.info("Shutting down source adapters...")
    await app.state.registry.aclose()
    log.info("Application shutdown complete")


app = FastAPI(
    title="Regulatory Alert Feed",
    description="Aggregates FDA, FSIS, CDC, EPA and Regulations.gov announcements into one normalized alert feed",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    debug=settings.is_development,
)


app.include_router(health.router)
app.include_router(ingest.router)
