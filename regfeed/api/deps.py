"""API dependencies"""

from typing import Generator, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from regfeed.core import db as db_module
from regfeed.ingestion.registry import SourceAdapterRegistry


def get_db() -> Generator[Optional[Session], None, None]:
    """Database session, or None when no DATABASE_URL is configured."""
    if db_module.SessionLocal is None:
        yield None
        return
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_registry(request: Request) -> SourceAdapterRegistry:
    return request.app.state.registry
