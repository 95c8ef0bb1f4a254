"""Orchestration logic for multi-source ingestion."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from regfeed.core.errors import SourceError, SourceErrorType
from regfeed.core.logging import get_logger
from regfeed.ingestion.base import BaseSourceAdapter, SourceErrorInfo, SourceFilter
from regfeed.normalize.mapper import map_records
from regfeed.normalize.validation import dedupe_alerts, validate_batch
from regfeed.schemas.alert import NormalizedAlert

log = get_logger("ingestion.runner")


class IngestReport(BaseModel):
    """Outcome of one source for one run."""

    source: str
    success: bool
    records_fetched: int = 0
    alerts: List[NormalizedAlert] = Field(default_factory=list)
    invalid: int = 0
    duplicates: int = 0
    cache_hits: int = 0
    errors: List[SourceErrorInfo] = Field(default_factory=list)

    @classmethod
    def failed(cls, source: str, error: SourceError) -> "IngestReport":
        return cls(source=source, success=False, errors=[SourceErrorInfo.from_error(error)])


class IngestionRunner:
    """Runs sources concurrently and returns validated alerts per source.

    Sources share nothing, so one failing or slow source never holds back
    the others.
    """

    def __init__(self, adapters: List[BaseSourceAdapter]):
        self.adapters = adapters

    async def run(
        self,
        filter: Optional[SourceFilter] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, IngestReport]:
        """Fetch, map, validate and dedupe every source.

        Sources still running after ``timeout`` seconds are cancelled and
        reported as ``timeout`` failures.
        """
        filter = filter or SourceFilter()
        tasks = {adapter.name: asyncio.create_task(self._run_one(adapter, filter)) for adapter in self.adapters}
        if not tasks:
            return {}

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        reports: Dict[str, IngestReport] = {}
        for name, task in tasks.items():
            if task in pending or task.cancelled():
                log.error(f"Source={name} did not finish within {timeout}s; cancelled")
                reports[name] = IngestReport.failed(
                    name, SourceError(SourceErrorType.TIMEOUT, f"source run exceeded {timeout}s", source=name)
                )
            elif task.exception() is not None:
                exc = task.exception()
                log.opt(exception=exc).error(f"Source={name} crashed: {exc!r}")
                reports[name] = IngestReport.failed(
                    name, SourceError(SourceErrorType.UNKNOWN, f"{type(exc).__name__}: {exc}", source=name)
                )
            else:
                reports[name] = task.result()
        return reports

    async def _run_one(self, adapter: BaseSourceAdapter, filter: SourceFilter) -> IngestReport:
        result = await adapter.fetch(filter)
        validation = validate_batch(map_records(result.records))
        alerts = dedupe_alerts(validation.valid)

        report = IngestReport(
            source=adapter.name,
            success=result.success,
            records_fetched=len(result.records),
            alerts=alerts,
            invalid=len(validation.invalid),
            duplicates=len(validation.valid) - len(alerts),
            cache_hits=result.cache_hits,
            errors=result.errors,
        )
        log.info(
            f"Source={adapter.name} success={report.success} fetched={report.records_fetched} "
            f"valid={len(alerts)} invalid={report.invalid} duplicates={report.duplicates}"
        )
        return report
