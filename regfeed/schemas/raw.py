"""Typed per-source records, validated where upstream payloads are parsed.

Each model accepts the field-name variants an agency is known to emit and
keeps the untouched item in ``payload`` so it can travel on as ``raw``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

from regfeed.extract.dates import parse_datetime


def _split_list(value: Any) -> Any:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


LenientDatetime = Annotated[Optional[datetime], BeforeValidator(parse_datetime)]
OptStr = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
OptInt = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
StrList = Annotated[List[str], BeforeValidator(_split_list)]


def _aliases(*names: str) -> Any:
    return Field(None, validation_alias=AliasChoices(*names))


class SourceRecordBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    payload: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_payload(cls, item: Dict[str, Any], **derived: Any):
        """Validate an upstream item; ``derived`` carries adapter-computed fields."""
        return cls.model_validate({**item, **derived, "payload": item})


class FDARecord(SourceRecordBase):
    record_type: Literal["fda"] = "fda"

    recall_number: OptStr = None
    event_id: OptStr = _aliases("event_id", "safetyreportid")
    id: OptStr = None
    classification: OptStr = None
    status: OptStr = None
    product_type: OptStr = None
    product_description: OptStr = None
    reason_for_recall: OptStr = None
    medicinalproduct: OptStr = None
    recall_initiation_date: LenientDatetime = None
    receivedate: LenientDatetime = None
    report_date: LenientDatetime = None
    recall_announcement_date: LenientDatetime = None
    termination_date: LenientDatetime = None
    date_created: LenientDatetime = None
    original_receive_date: LenientDatetime = None
    state: OptStr = None
    city: OptStr = None
    country: OptStr = None
    distribution_pattern: OptStr = None
    more_code_info: OptStr = None
    recalling_firm: OptStr = None
    # drug shortages
    shortage_id: OptStr = None
    generic_name: OptStr = _aliases("generic_name", "product_name")
    shortage_reason: OptStr = _aliases("shortage_reason", "reason")
    dosage_form: OptStr = None
    initial_posting_date: LenientDatetime = None
    update_date: LenientDatetime = _aliases("update_date", "revision_date")
    endpoint: OptStr = None  # program the record came from, e.g. food or drug_shortage


class FSISRecord(SourceRecordBase):
    record_type: Literal["fsis"] = "fsis"

    recall_number: OptStr = _aliases("recallNumber", "recall_number", "field_recall_number")
    product_name: OptStr = _aliases("productName", "product_name", "field_title")
    recall_date: LenientDatetime = _aliases("recallDate", "recall_date", "field_recall_date")
    last_modified: LenientDatetime = _aliases("lastModified", "last_modified", "field_last_modified_date")
    recall_class: OptStr = _aliases("recallClass", "recall_class", "field_recall_classification")
    risk_level: OptStr = _aliases("riskLevel", "risk_level", "field_risk_level")
    summary: OptStr = _aliases("summary", "field_summary")
    reason: OptStr = _aliases("reasonForRecall", "reason_for_recall", "field_recall_reason")
    link: OptStr = _aliases("link", "url", "field_recall_url")
    distribution_pattern: OptStr = _aliases("distributionPattern", "distribution_pattern", "field_states")
    establishment: OptStr = _aliases("establishment", "field_establishment")


class CDCOutbreakRecord(SourceRecordBase):
    record_type: Literal["cdc_outbreak"] = "cdc_outbreak"
    type: str = "outbreak"

    id: OptStr = _aliases("id", "outbreak_id", "guid")
    title: OptStr = _aliases("title", "headline", "name", "outbreak_name")
    summary: OptStr = _aliases("summary", "description", "investigation_summary")
    link: OptStr = _aliases("link", "url", "web_link")
    date_published: LenientDatetime = _aliases("date_published", "pub_date", "investigation_start_date")
    date_updated: LenientDatetime = _aliases("date_updated", "last_updated")
    status: OptStr = _aliases("investigation_status", "status")
    states_affected: StrList = Field(default_factory=list, validation_alias=AliasChoices("states_affected", "locations"))
    food_vehicle: StrList = Field(default_factory=list, validation_alias=AliasChoices("food_vehicle", "products"))
    pathogen: OptStr = None
    illnesses: OptInt = None
    hospitalizations: OptInt = None
    deaths: OptInt = None
    multistate: OptStr = None


class CDCAdvisoryRecord(SourceRecordBase):
    record_type: Literal["cdc_advisory"] = "cdc_advisory"
    type: str = "advisory"
    status: str = "active"

    guid: OptStr = _aliases("guid", "id")
    title: OptStr = None
    description: OptStr = _aliases("description", "summary")
    link: OptStr = None
    pub_date: LenientDatetime = _aliases("pub_date", "pubDate", "published")


class EPARecord(SourceRecordBase):
    record_type: Literal["epa"] = "epa"

    case_number: OptStr = _aliases("case_number", "enforcement_id", "guid", "id")
    case_name: OptStr = _aliases("case_name", "title")
    summary: OptStr = _aliases("summary", "case_summary", "description")
    link: OptStr = None
    action_date: LenientDatetime = _aliases("action_date", "date_achieved", "settlement_date", "pub_date")
    action_type: str = "enforcement_action"
    significance: str = "moderate"
    penalty_amount: Optional[float] = None
    environmental_media: StrList = Field(default_factory=list)
    state: OptStr = None
    region: OptStr = None
    defendant: OptStr = _aliases("defendant", "defendant_entity")
    facility: OptStr = _aliases("facility", "facility_name")
    violations: StrList = Field(default_factory=list)


class RegulationsGovRecord(SourceRecordBase):
    record_type: Literal["regulations_gov"] = "regulations_gov"

    document_id: OptStr = _aliases("document_id", "id")
    agency_id: OptStr = _aliases("agencyId", "agency_id")
    title: OptStr = None
    document_type: OptStr = _aliases("documentType", "document_type")
    summary: OptStr = None
    posted_date: LenientDatetime = _aliases("postedDate", "posted_date")
    last_modified_date: LenientDatetime = _aliases("lastModifiedDate", "last_modified_date")
    open_for_comment: Optional[bool] = Field(False, validation_alias=AliasChoices("openForComment", "open_for_comment"))
    comment_end_date: LenientDatetime = _aliases("commentEndDate", "comment_end_date")
    docket_id: OptStr = _aliases("docketId", "docket_id")
    link: OptStr = None
    urgency: Literal["High", "Medium", "Low"] = "Low"


SourceRecord = Union[
    FDARecord,
    FSISRecord,
    CDCOutbreakRecord,
    CDCAdvisoryRecord,
    EPARecord,
    RegulationsGovRecord,
]
