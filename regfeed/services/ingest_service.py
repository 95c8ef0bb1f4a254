"""End-to-end ingestion for all regulatory sources (FDA, FSIS, CDC, EPA, Regulations.gov)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from regfeed.core.config import settings
from regfeed.core.logging import get_logger
from regfeed.ingestion.base import SourceFilter
from regfeed.ingestion.registry import SourceAdapterRegistry, SourceName
from regfeed.ingestion.runner import IngestionRunner, IngestReport
from regfeed.storage.upsert import AlertSink

log = get_logger("ingest_service")


class IngestService:
    """Runs the pipeline for one or all sources and hands alerts to a sink.

    Responsibilities:
    - Fetch each source through its adapter (resilience handled per adapter)
    - Map, validate and dedupe records into NormalizedAlerts
    - Upsert valid alerts when a sink is configured
    - Report per-source outcomes without letting one source fail the rest
    """

    def __init__(self, registry: SourceAdapterRegistry, sink: Optional[AlertSink] = None):
        self.registry = registry
        self.sink = sink

    async def run(self, source: SourceName, filter: Optional[SourceFilter] = None) -> Dict[str, Any]:
        """Run ingestion for a single source."""
        adapter = self.registry.get(source)
        log.info(f"Starting ingestion for {source}")
        reports = await IngestionRunner([adapter]).run(filter, timeout=settings.INGEST_TIMEOUT_SECONDS)
        report = reports[adapter.name]

        try:
            written = self._store(report)
        except Exception as exc:  # noqa: BLE001
            log.error(f"Storing alerts failed for {source}: {exc}")
            raise

        log.info(f"Ingestion finished for {source} | alerts={len(report.alerts)} written={written}")
        return self._summary(report, written)

    async def run_all(self, filter: Optional[SourceFilter] = None) -> Dict[str, Dict[str, Any]]:
        """Run every configured source concurrently."""
        runner = IngestionRunner(self.registry.adapters())
        reports = await runner.run(filter, timeout=settings.INGEST_TIMEOUT_SECONDS)

        results: Dict[str, Dict[str, Any]] = {}
        for source, report in reports.items():
            try:
                results[source] = self._summary(report, self._store(report))
            except Exception as exc:  # noqa: BLE001
                log.error(f"Storing alerts failed for {source}: {exc}")
                results[source] = {"success": False, "error": str(exc), "source": source}
        return results

    def _store(self, report: IngestReport) -> int:
        if self.sink is None or not report.alerts:
            return 0
        return self.sink.upsert(report.alerts)

    @staticmethod
    def _summary(report: IngestReport, written: int) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "success": report.success,
            "source": report.source,
            "records_fetched": report.records_fetched,
            "records_processed": len(report.alerts),
            "records_written": written,
            "invalid": report.invalid,
            "duplicates": report.duplicates,
            "cache_hits": report.cache_hits,
        }
        if report.errors:
            summary["errors"] = [error.model_dump(mode="json") for error in report.errors]
        return summary
