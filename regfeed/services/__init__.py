# Services package
from regfeed.services.ingest_service import IngestService

__all__ = ["IngestService"]
