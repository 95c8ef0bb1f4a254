"""Hashing, severity, mapping and validation of normalized alerts"""

import hashlib
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from regfeed.core.errors import AlertValidationError
from regfeed.normalize.hashing import canonical_timestamp, compute_alert_hash, is_sha256_hex
from regfeed.normalize.mapper import map_record, map_records
from regfeed.normalize.severity import (
    DEFAULT_SEVERITY,
    severity_for_cdc,
    severity_for_epa,
    severity_for_fda,
    severity_for_fsis,
    severity_for_regulations_gov,
)
from regfeed.normalize.validation import dedupe_alerts, validate_alert, validate_batch
from regfeed.schemas.alert import AlertCategory, AlertSource, NormalizedAlert
from regfeed.schemas.raw import (
    CDCAdvisoryRecord,
    CDCOutbreakRecord,
    EPARecord,
    FDARecord,
    FSISRecord,
    RegulationsGovRecord,
)


def candidate(**overrides):
    data = {
        "external_id": "F-0001-2024",
        "source": "FDA",
        "title": "Frozen chicken dinners",
        "date_published": "2024-01-10",
        "category": "recall",
        "severity": 90,
    }
    data.update(overrides)
    return data


class TestHashing:
    """Identity hash stability"""

    def test_is_sha256(self):
        assert is_sha256_hex(compute_alert_hash("FDA", "F-1", None, "2024-01-10"))

    def test_idempotent(self):
        first = compute_alert_hash("FDA", "F-1", "2024-02-01", "2024-01-10")
        second = compute_alert_hash("FDA", "F-1", "2024-02-01", "2024-01-10")
        assert first == second

    def test_id_whitespace_and_case_ignored(self):
        assert compute_alert_hash("FDA", "  f-1 ", None, "2024-01-10") == compute_alert_hash(
            "FDA", "F-1", None, "2024-01-10"
        )

    def test_equivalent_timestamps_agree(self):
        as_text = compute_alert_hash("CDC", "x", None, "2024-01-10T05:00:00-05:00")
        as_datetime = compute_alert_hash("CDC", "x", None, datetime(2024, 1, 10, 10, 0, tzinfo=timezone.utc))
        assert as_text == as_datetime

    def test_date_updated_changes_hash(self):
        original = compute_alert_hash("FDA", "F-1", None, "2024-01-10")
        updated = compute_alert_hash("FDA", "F-1", "2024-03-01", "2024-01-10")
        assert original != updated

    def test_source_is_part_of_identity(self):
        assert compute_alert_hash("FDA", "X-1", None, "2024-01-10") != compute_alert_hash(
            "FSIS", "X-1", None, "2024-01-10"
        )

    def test_canonical_timestamp(self):
        assert canonical_timestamp("20240115") == "2024-01-15T00:00:00+00:00"
        assert canonical_timestamp("garbage") == ""


class TestSeverity:
    """Severity scores are total and bounded"""

    @pytest.mark.parametrize("value", [None, "", "Class IV", "unknown", "   "])
    def test_unknown_inputs_use_default(self, value):
        assert severity_for_fda(value) == DEFAULT_SEVERITY
        assert severity_for_fsis(value) == DEFAULT_SEVERITY
        assert severity_for_regulations_gov(value) == DEFAULT_SEVERITY
        assert severity_for_cdc(value, value) == DEFAULT_SEVERITY
        assert severity_for_epa(value, value) == DEFAULT_SEVERITY

    @pytest.mark.parametrize("value", ["Class I", "class ii", "CLASS III", "High", "Low - Class III", "Medium"])
    def test_bounded(self, value):
        for score in (severity_for_fda(value), severity_for_fsis(value), severity_for_regulations_gov(value)):
            assert 0 <= score <= 100

    def test_fda_classes(self):
        assert severity_for_fda("Class I") == 90
        assert severity_for_fda("Class II") == 60
        assert severity_for_fda("Class III") == 30

    def test_fsis_risk_levels(self):
        assert severity_for_fsis("High - Class I") == 85
        assert severity_for_fsis("Low") == 25
        assert severity_for_fsis("Class II") == 60

    def test_cdc(self):
        assert severity_for_cdc("Active", "outbreak") == 70
        assert severity_for_cdc("Closed", "outbreak") == 40
        assert severity_for_cdc(None, "outbreak") == 75
        assert severity_for_cdc(None, "recall") == 80

    def test_epa(self):
        assert severity_for_epa("penalty", "significant") == 80
        assert severity_for_epa("violation_notice", "moderate") == 75
        assert severity_for_epa("warning", "routine") == 40
        assert severity_for_epa("settlement", "moderate") == 60


class TestNormalizedAlert:
    def test_hash_filled_and_fields_normalized(self):
        alert = NormalizedAlert.model_validate(
            candidate(external_id=" f-0001-2024 ", title="  Frozen chicken dinners ", locations=["NV", "CA", "CA"])
        )
        assert alert.external_id == "F-0001-2024"
        assert alert.title == "Frozen chicken dinners"
        assert alert.locations == ["CA", "NV"]
        assert alert.source is AlertSource.FDA
        assert alert.hash == compute_alert_hash("FDA", "F-0001-2024", None, "2024-01-10")

    def test_supplied_hash_must_match(self):
        with pytest.raises(AlertValidationError):
            validate_alert(candidate(hash="0" * 64))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "   "},
            {"external_id": ""},
            {"date_published": None},
            {"date_published": "not a date"},
            {"severity": 101},
            {"severity": -1},
            {"link_url": "ftp://example.com/file"},
            {"category": "rumor"},
            {"source": "NOAA"},
        ],
    )
    def test_invalid_candidates(self, overrides):
        with pytest.raises(AlertValidationError) as info:
            validate_alert(candidate(**overrides))
        assert info.value.errors

    def test_severity_and_category_are_optional(self):
        result = validate_batch([{k: v for k, v in candidate().items() if k not in ("severity", "category")}])

        assert result.invalid == []
        [alert] = result.valid
        assert alert.severity is None
        assert alert.category is None

    def test_json_dates_reproduce_the_hash(self):
        alert = validate_alert(candidate(date_published="2024-01-15T05:00:00.500000-05:00"))
        data = alert.model_dump(mode="json")

        assert data["date_published"] == "2024-01-15T10:00:00+00:00"
        assert data["date_updated"] is None
        key = f"{data['source']}:{data['external_id']}:{data['date_published']}"
        assert hashlib.sha256(key.encode("utf-8")).hexdigest() == alert.hash

    def test_alert_is_immutable(self):
        alert = validate_alert(candidate())
        with pytest.raises(ValidationError):
            alert.title = "changed"


class TestMappers:
    """Source record to alert candidate mapping"""

    def test_fda_class_i_recall(self):
        record = FDARecord.from_payload(
            {
                "recall_number": "F-0001-2024",
                "classification": "Class I",
                "status": "Ongoing",
                "product_type": "Food",
                "product_description": "Frozen chicken food bowls",
                "reason_for_recall": "Undeclared milk",
                "recall_initiation_date": "20240110",
                "state": "CA",
                "country": "United States",
                "distribution_pattern": "CA, NV and AZ",
                "more_code_info": "",
            },
            endpoint="food",
        )
        alert = validate_alert(map_record(record))

        assert alert.severity == 90
        assert alert.category is AlertCategory.RECALL
        assert alert.jurisdiction == "CA"
        assert alert.locations == ["AZ", "CA", "NV"]
        assert alert.product_types == ["Food"]
        assert alert.link_url is None
        assert alert.raw["recall_number"] == "F-0001-2024"

    def test_fda_adverse_event(self):
        record = FDARecord.from_payload(
            {"safetyreportid": "10003", "receivedate": "20240301"},
            medicinalproduct="ASPIRIN",
        )
        alert = validate_alert(map_record(record))
        assert alert.category is AlertCategory.ADVERSE_EVENT
        assert alert.title == "ASPIRIN"

    def test_fda_drug_shortage(self):
        record = FDARecord.from_payload(
            {
                "generic_name": "Amoxicillin Oral Powder",
                "status": "Current",
                "shortage_reason": "Manufacturing delays",
                "initial_posting_date": "01/05/2024",
                "update_date": "02/20/2024",
            },
            endpoint="drug_shortage",
            shortage_id="Amoxicillin Oral Powder",
        )
        alert = validate_alert(map_record(record))

        assert alert.category is AlertCategory.ENFORCEMENT
        assert alert.title == "Drug shortage: Amoxicillin Oral Powder"
        assert alert.summary == "Manufacturing delays"
        assert alert.product_types == ["Drug"]
        assert alert.severity == 50
        assert alert.date_published == datetime(2024, 1, 5, tzinfo=timezone.utc)
        assert alert.date_updated == datetime(2024, 2, 20, tzinfo=timezone.utc)

    def test_fsis_field_aliases(self):
        record = FSISRecord.from_payload(
            {
                "field_recall_number": "024-2024",
                "field_title": "Ground Beef Products",
                "field_recall_date": "2024-05-01",
                "field_risk_level": "High - Class I",
                "field_states": "Texas, Oklahoma",
                "field_summary": "<p>E. coli O157:H7</p>",
            }
        )
        alert = validate_alert(map_record(record))
        assert alert.external_id == "024-2024"
        assert alert.severity == 85
        assert alert.locations == ["OK", "TX"]
        assert alert.product_types == ["Beef"]
        assert alert.summary == "E. coli O157:H7"

    def test_cdc_outbreak_title_from_pathogen(self):
        record = CDCOutbreakRecord.from_payload(
            {
                "outbreak_id": "OB-77",
                "pathogen": "Salmonella",
                "food_vehicle": "cucumbers",
                "states_affected": "California, TX",
                "investigation_start_date": "2024-06-01",
                "investigation_status": "Active",
            }
        )
        alert = validate_alert(map_record(record))
        assert alert.title == "Salmonella Outbreak Linked to cucumbers"
        assert alert.category is AlertCategory.OUTBREAK
        assert alert.severity == 70
        assert alert.locations == ["CA", "TX"]

    def test_cdc_advisory(self):
        record = CDCAdvisoryRecord.from_payload(
            {
                "title": "Health Advisory: Measles in Ohio",
                "description": "Clinicians should be alert.",
                "link": "https://www.cdc.gov/han/2024/han001.html",
                "guid": "han001",
                "pub_date": "Fri, 14 Jun 2024 10:00:00 GMT",
            }
        )
        alert = validate_alert(map_record(record))
        assert alert.category is AlertCategory.ADVISORY
        assert alert.severity == 70
        assert alert.locations == ["OH"]

    def test_epa(self):
        record = EPARecord.from_payload(
            {
                "title": "Acme settles Clean Air Act case",
                "link": "https://www.epa.gov/newsreleases/acme",
                "pub_date": "2024-06-10",
            },
            action_type="settlement",
            significance="moderate",
            state="TX",
            region="Region 6",
            environmental_media=["Air"],
        )
        alert = validate_alert(map_record(record))
        assert alert.external_id == "HTTPS://WWW.EPA.GOV/NEWSRELEASES/ACME"
        assert alert.category is AlertCategory.ENFORCEMENT
        assert alert.severity == 60
        assert alert.jurisdiction == "TX"
        assert alert.product_types == ["Air"]

    def test_regulations_gov_default_link(self):
        record = RegulationsGovRecord.from_payload(
            {"id": "FDA-2024-N-0001-0001", "title": "Final rule", "postedDate": "2024-06-01T00:00:00Z"},
            urgency="Medium",
        )
        alert = validate_alert(map_record(record))
        assert alert.link_url == "https://www.regulations.gov/document/FDA-2024-N-0001-0001"
        assert alert.severity == 50
        assert alert.product_types == []

    def test_unknown_record_type(self):
        with pytest.raises(TypeError):
            map_record(object())


class TestBatchValidation:
    def test_bad_candidate_is_isolated(self):
        candidates = [
            candidate(external_id="A-1"),
            candidate(external_id="A-2", title=""),
            candidate(external_id="A-3"),
        ]
        result = validate_batch(candidates)

        assert [a.external_id for a in result.valid] == ["A-1", "A-3"]
        assert len(result.invalid) == 1
        assert result.invalid[0].candidate["external_id"] == "A-2"
        assert any(err["loc"] == ("title",) for err in result.invalid[0].errors)

    def test_non_dict_candidate(self):
        result = validate_batch([candidate(), "not an alert"])
        assert len(result.valid) == 1
        assert len(result.invalid) == 1

    def test_dedupe_keeps_first(self):
        alerts = validate_batch(
            [
                candidate(title="first"),
                candidate(title="second"),
                candidate(external_id="other"),
            ]
        ).valid
        unique = dedupe_alerts(alerts)
        assert [a.title for a in unique] == ["first", "Frozen chicken dinners"]

    def test_map_records_preserves_order(self):
        records = [
            RegulationsGovRecord.from_payload({"id": "D-1", "title": "a", "postedDate": "2024-01-01"}),
            RegulationsGovRecord.from_payload({"id": "D-2", "title": "b", "postedDate": "2024-01-02"}),
        ]
        assert [c["external_id"] for c in map_records(records)] == ["D-1", "D-2"]
