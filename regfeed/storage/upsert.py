"""Idempotent alert writes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from regfeed.core.logging import get_logger
from regfeed.schemas.alert import NormalizedAlert
from regfeed.storage.models import AlertRow

log = get_logger("storage.upsert")

_UPDATABLE = (
    "hash",
    "title",
    "summary",
    "link_url",
    "date_published",
    "date_updated",
    "jurisdiction",
    "locations",
    "product_types",
    "category",
    "severity",
    "raw",
)


class AlertSink(Protocol):
    def upsert(self, alerts: Sequence[NormalizedAlert]) -> int: ...


def alert_to_row(alert: NormalizedAlert) -> Dict[str, Any]:
    data = alert.model_dump(mode="json", exclude={"date_published", "date_updated"})
    data["date_published"] = alert.date_published
    data["date_updated"] = alert.date_updated
    return data


class SqlAlchemyAlertSink:
    """Upserts alerts on (source, external_id); rows whose hash is unchanged are left alone.

    The session is owned by the caller; ``upsert`` commits its own statement.
    """

    def __init__(self, db: Session):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise NotImplementedError(f"Upsert not supported for dialect {dialect}")

    def upsert(self, alerts: Sequence[NormalizedAlert]) -> int:
        if not alerts:
            return 0

        # One row per key; a later alert for the same key wins
        rows_by_key: Dict[tuple, Dict[str, Any]] = {}
        for alert in alerts:
            rows_by_key[(alert.source.value, alert.external_id)] = alert_to_row(alert)
        rows: List[Dict[str, Any]] = list(rows_by_key.values())

        insert = self._insert()
        stmt = insert(AlertRow).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AlertRow.source, AlertRow.external_id],
            set_={
                **{column: getattr(stmt.excluded, column) for column in _UPDATABLE},
                "updated_at": datetime.now(timezone.utc),
            },
            where=AlertRow.hash != stmt.excluded.hash,
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        written = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(rows)
        log.info(f"Upserted alerts: submitted={len(rows)} written={written}")
        return written
