"""Maps typed source records onto NormalizedAlert candidates.

The mappers return plain dicts; ``validate_batch`` turns them into alerts
and isolates any that are malformed.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Type

from regfeed.extract.locations import extract_locations, extract_state, extract_state_codes
from regfeed.extract.products import extract_fda_product_types, extract_fsis_product_types
from regfeed.extract.text import clean_text
from regfeed.normalize.severity import (
    severity_for_cdc,
    severity_for_epa,
    severity_for_fda,
    severity_for_fsis,
    severity_for_regulations_gov,
)
from regfeed.schemas.alert import AlertCategory, AlertSource
from regfeed.schemas.raw import (
    CDCAdvisoryRecord,
    CDCOutbreakRecord,
    EPARecord,
    FDARecord,
    FSISRecord,
    RegulationsGovRecord,
    SourceRecord,
)

Candidate = Dict[str, Any]

US_NAMES = {"US", "USA", "UNITED STATES", "UNITED STATES OF AMERICA"}
REGULATIONS_GOV_DOCUMENT_URL = "https://www.regulations.gov/document/{id}"


def _http_link(value: str | None) -> str | None:
    if value and value.strip().lower().startswith(("http://", "https://")):
        return value.strip()
    return None


def _cdc_category(alert_type: str | None) -> AlertCategory:
    kind = (alert_type or "").strip().lower()
    if kind == "outbreak":
        return AlertCategory.OUTBREAK
    if kind == "recall":
        return AlertCategory.RECALL
    return AlertCategory.ADVISORY


# -------------------------------------------------------------------------
# Per-source mappers
# -------------------------------------------------------------------------
def _map_fda_shortage(record: FDARecord) -> Candidate:
    name = record.generic_name or "Unknown drug"
    return {
        "external_id": record.shortage_id,
        "source": AlertSource.FDA,
        "title": f"Drug shortage: {name}",
        "summary": record.shortage_reason,
        "link_url": None,
        "date_published": record.initial_posting_date or record.update_date,
        "date_updated": record.update_date,
        "jurisdiction": "US",
        "locations": [],
        "product_types": ["Drug"],
        "category": AlertCategory.ENFORCEMENT,
        "severity": severity_for_fda(record.classification),
        "raw": record.payload,
    }


def map_fda(record: FDARecord) -> Candidate:
    if record.endpoint == "drug_shortage":
        return _map_fda_shortage(record)

    is_domestic = (record.country or "").strip().upper() in US_NAMES

    locations = set(extract_state_codes(record.distribution_pattern))
    if record.state:
        locations.add(record.state)
    if record.city:
        locations.add(record.city)
    if record.country and not is_domestic:
        locations.add(record.country)

    if record.recall_number or record.status:
        category = AlertCategory.RECALL
    elif record.event_id:
        category = AlertCategory.ADVERSE_EVENT
    else:
        category = AlertCategory.ENFORCEMENT

    return {
        "external_id": record.recall_number or record.event_id or record.id,
        "source": AlertSource.FDA,
        "title": record.product_description or record.reason_for_recall or record.medicinalproduct or "FDA Alert",
        "summary": record.reason_for_recall or record.product_description,
        "link_url": _http_link(record.more_code_info),
        "date_published": (
            record.recall_initiation_date
            or record.receivedate
            or record.report_date
            or record.date_created
            or record.original_receive_date
        ),
        "date_updated": record.recall_announcement_date or record.termination_date,
        "jurisdiction": record.state if is_domestic else record.country,
        "locations": sorted(locations),
        "product_types": extract_fda_product_types(record.product_type, record.product_description),
        "category": category,
        "severity": severity_for_fda(record.classification),
        "raw": record.payload,
    }


def map_fsis(record: FSISRecord) -> Candidate:
    return {
        "external_id": record.recall_number,
        "source": AlertSource.FSIS,
        "title": record.product_name,
        "summary": clean_text(record.summary or record.reason) or None,
        "link_url": _http_link(record.link),
        "date_published": record.recall_date,
        "date_updated": record.last_modified,
        "jurisdiction": "United States",
        "locations": extract_locations(record.distribution_pattern),
        "product_types": extract_fsis_product_types(record.product_name),
        "category": AlertCategory.RECALL,
        "severity": severity_for_fsis(record.recall_class or record.risk_level),
        "raw": record.payload,
    }


def map_cdc_outbreak(record: CDCOutbreakRecord) -> Candidate:
    title = record.title
    if not title and record.pathogen:
        title = f"{record.pathogen} Outbreak"
        if record.food_vehicle:
            title += f" Linked to {', '.join(record.food_vehicle)}"

    return {
        "external_id": record.id,
        "source": AlertSource.CDC,
        "title": title,
        "summary": clean_text(record.summary) or None,
        "link_url": _http_link(record.link),
        "date_published": record.date_published,
        "date_updated": record.date_updated,
        "jurisdiction": "United States",
        "locations": [extract_state(state) or state for state in record.states_affected],
        "product_types": record.food_vehicle,
        "category": _cdc_category(record.type),
        "severity": severity_for_cdc(record.status or "active", record.type),
        "raw": record.payload,
    }


def map_cdc_advisory(record: CDCAdvisoryRecord) -> Candidate:
    title = clean_text(record.title)
    summary = clean_text(record.description)
    return {
        "external_id": record.guid or record.link,
        "source": AlertSource.CDC,
        "title": title,
        "summary": summary or None,
        "link_url": _http_link(record.link),
        "date_published": record.pub_date,
        "date_updated": None,
        "jurisdiction": "United States",
        "locations": extract_locations(f"{title} {summary}"),
        "product_types": [],
        "category": _cdc_category(record.type),
        "severity": severity_for_cdc(record.status, record.type),
        "raw": record.payload,
    }


def map_epa(record: EPARecord) -> Candidate:
    return {
        "external_id": record.case_number or record.link,
        "source": AlertSource.EPA,
        "title": record.case_name or record.defendant or record.facility,
        "summary": record.summary or ("; ".join(record.violations) or None),
        "link_url": _http_link(record.link),
        "date_published": record.action_date,
        "date_updated": None,
        "jurisdiction": record.state or record.region,
        "locations": [record.state] if record.state else [],
        "product_types": record.environmental_media,
        "category": AlertCategory.ENFORCEMENT,
        "severity": severity_for_epa(record.action_type, record.significance),
        "raw": record.payload,
    }


def map_regulations_gov(record: RegulationsGovRecord) -> Candidate:
    link = _http_link(record.link)
    if link is None and record.document_id:
        link = REGULATIONS_GOV_DOCUMENT_URL.format(id=record.document_id)
    return {
        "external_id": record.document_id,
        "source": AlertSource.REGULATIONS_GOV,
        "title": record.title,
        "summary": clean_text(record.summary) or None,
        "link_url": link,
        "date_published": record.posted_date,
        "date_updated": record.last_modified_date,
        "jurisdiction": "United States",
        "locations": [],
        "product_types": [],
        "category": AlertCategory.ADVISORY,
        "severity": severity_for_regulations_gov(record.urgency),
        "raw": record.payload,
    }


_MAPPERS: Dict[Type[Any], Callable[[Any], Candidate]] = {
    FDARecord: map_fda,
    FSISRecord: map_fsis,
    CDCOutbreakRecord: map_cdc_outbreak,
    CDCAdvisoryRecord: map_cdc_advisory,
    EPARecord: map_epa,
    RegulationsGovRecord: map_regulations_gov,
}


def map_record(record: SourceRecord) -> Candidate:
    try:
        mapper = _MAPPERS[type(record)]
    except KeyError:
        raise TypeError(f"No mapper registered for {type(record).__name__}") from None
    return mapper(record)


def map_records(records: List[SourceRecord]) -> List[Candidate]:
    return [map_record(record) for record in records]
