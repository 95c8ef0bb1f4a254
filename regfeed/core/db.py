"""Optional database engine for the API and entrypoint surfaces."""

from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from regfeed.core.config import settings
from regfeed.core.logging import get_logger

log = get_logger("db")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

engine: Optional[Engine] = create_engine(settings.DATABASE_URL, pool_pre_ping=True) if settings.DATABASE_URL else None
SessionLocal: Optional[sessionmaker[Session]] = (
    sessionmaker(bind=engine, autoflush=False, expire_on_commit=False) if engine is not None else None
)


def run_migrations() -> None:
    """Execute Alembic migrations to head when a database is configured."""
    if not settings.DATABASE_URL:
        log.info("DATABASE_URL not set; skipping migrations")
        return
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    log.info("Running Alembic migrations to head")
    command.upgrade(alembic_cfg, "head")
    log.info("Alembic migrations applied")
