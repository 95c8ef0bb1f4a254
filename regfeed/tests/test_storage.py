"""Alert upsert against an in-memory SQLite database"""

import pytest
from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.orm import Session

from regfeed.core import db as db_module
from regfeed.core.config import settings
from regfeed.normalize.validation import validate_alert
from regfeed.storage import AlertRow, Base, SqlAlchemyAlertSink


def make_alert(external_id="F-1", title="Frozen chicken dinners", date_updated=None):
    return validate_alert(
        {
            "external_id": external_id,
            "source": "FDA",
            "title": title,
            "date_published": "2024-01-10",
            "date_updated": date_updated,
            "category": "recall",
            "severity": 90,
            "locations": ["CA"],
            "raw": {"recall_number": external_id},
        }
    )


@pytest.fixture
def db():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


def row_count(db):
    return db.scalar(select(func.count()).select_from(AlertRow))


class TestSqlAlchemyAlertSink:
    def test_insert(self, db):
        sink = SqlAlchemyAlertSink(db)
        assert sink.upsert([make_alert("F-1"), make_alert("F-2")]) == 2
        assert row_count(db) == 2

        row = db.get(AlertRow, ("FDA", "F-1"))
        assert row.locations == ["CA"]
        assert row.raw == {"recall_number": "F-1"}
        assert row.category == "recall"

    def test_same_batch_twice_writes_nothing(self, db):
        """Re-ingesting identical alerts leaves the table unchanged"""
        sink = SqlAlchemyAlertSink(db)
        alerts = [make_alert("F-1"), make_alert("F-2")]
        sink.upsert(alerts)

        assert sink.upsert(alerts) == 0
        assert row_count(db) == 2

    def test_changed_hash_rewrites_row(self, db):
        sink = SqlAlchemyAlertSink(db)
        sink.upsert([make_alert("F-1")])

        updated = make_alert("F-1", title="Frozen chicken dinners (expanded)", date_updated="2024-02-01")
        assert sink.upsert([updated]) == 1

        db.expire_all()
        row = db.get(AlertRow, ("FDA", "F-1"))
        assert row.title == "Frozen chicken dinners (expanded)"
        assert row.hash == updated.hash
        assert row_count(db) == 1

    def test_duplicate_keys_in_one_batch(self, db):
        sink = SqlAlchemyAlertSink(db)
        sink.upsert([make_alert("F-1", title="old"), make_alert("F-1", title="new", date_updated="2024-03-01")])

        assert row_count(db) == 1
        assert db.get(AlertRow, ("FDA", "F-1")).title == "new"

    def test_empty_batch(self, db):
        assert SqlAlchemyAlertSink(db).upsert([]) == 0

    def test_alert_without_severity_or_category(self, db):
        alert = validate_alert(
            {"external_id": "R-9", "source": "FDA", "title": "Notice", "date_published": "2024-01-10"}
        )
        assert SqlAlchemyAlertSink(db).upsert([alert]) == 1

        row = db.get(AlertRow, ("FDA", "R-9"))
        assert row.severity is None
        assert row.category is None


class TestMigrations:
    def test_skipped_without_database_url(self, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", None)
        db_module.run_migrations()

    def test_upgrade_creates_alert_table(self, tmp_path, monkeypatch):
        url = f"sqlite:///{tmp_path / 'regfeed.db'}"
        monkeypatch.setattr(settings, "DATABASE_URL", url)

        db_module.run_migrations()

        engine = create_engine(url)
        inspector = inspect(engine)
        assert "normalized_alerts" in inspector.get_table_names()
        columns = {c["name"] for c in inspector.get_columns("normalized_alerts")}
        assert {"source", "external_id", "hash", "severity", "raw"} <= columns
        indexes = {ix["name"] for ix in inspector.get_indexes("normalized_alerts")}
        assert "ix_normalized_alerts_hash" in indexes

        with Session(engine) as session:
            assert SqlAlchemyAlertSink(session).upsert([make_alert("F-1")]) == 1
        engine.dispose()
