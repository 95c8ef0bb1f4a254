"""Ingest entrypoint - standalone script for scheduled ingestion runs.

Usage:
    python -m regfeed.ingest_entrypoint                    # Run all sources
    python -m regfeed.ingest_entrypoint fda                # Run single source
    python -m regfeed.ingest_entrypoint cdc --days 7       # Custom look-back window
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

from regfeed.core import db as db_module
from regfeed.core.logging import get_logger
from regfeed.ingestion.base import SourceFilter
from regfeed.ingestion.registry import SOURCE_NAMES, SourceAdapterRegistry
from regfeed.services.ingest_service import IngestService
from regfeed.storage.upsert import SqlAlchemyAlertSink

logger = get_logger("ingest_entrypoint")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="regfeed-ingest", description="Run regulatory alert ingestion")
    parser.add_argument("source", nargs="?", choices=SOURCE_NAMES, help="single source to run (default: all)")
    parser.add_argument("--days", type=int, default=None, help="look-back window in days")
    parser.add_argument("--keyword", default=None, help="keyword filter passed to every source")
    return parser.parse_args(argv)


async def run_ingest(source: Optional[str], filter: SourceFilter) -> Dict[str, Any]:
    registry = SourceAdapterRegistry.from_settings([source] if source else None)
    session = db_module.SessionLocal() if db_module.SessionLocal is not None else None
    try:
        db_module.run_migrations()
        service = IngestService(registry, SqlAlchemyAlertSink(session) if session is not None else None)
        if source:
            return {source: await service.run(source, filter)}  # type: ignore[arg-type]
        return await service.run_all(filter)
    finally:
        if session is not None:
            session.close()
        await registry.aclose()


def main(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """Main entry point for the ingestion pipeline."""
    args = parse_args(argv)
    filter = SourceFilter(keyword=args.keyword, **({"days": args.days} if args.days else {}))

    logger.info(f"Ingestion starting for {args.source or 'all sources'}")
    results = asyncio.run(run_ingest(args.source, filter))
    logger.info(f"Ingestion completed: {results}")

    # Exit with error code if any source failed
    if any(not r.get("success", False) for r in results.values()):
        sys.exit(1)
    return results


if __name__ == "__main__":
    main()
