"""Keyword heuristics for enforcement news text.

Every classifier checks its keyword groups in a fixed order and the first
match wins. Keywords match as plain substrings, so "refinery" counts as
a "fine". Text that matches nothing gets the default value instead of an
error.
"""

from __future__ import annotations

import html
import re
from typing import List, Optional, Sequence, Tuple

_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

_PENALTY_RE = re.compile(r"\$([0-9][0-9,]*(?:\.[0-9]+)?)(?:\s+(million|thousand|billion))?", re.IGNORECASE)
_SCALE = {"thousand": 1_000, "million": 1_000_000, "billion": 1_000_000_000}

_VIOLATION_PATTERNS = [
    re.compile(r"violations? of ([^.;]+)", re.IGNORECASE),
    re.compile(r"violated ([^.;]+)", re.IGNORECASE),
    re.compile(r"failure to ([^.;]+)", re.IGNORECASE),
]

_DEFENDANT_PATTERNS = [
    re.compile(r"EPA (?:settles with|fines|penalizes) ([^,;]+)", re.IGNORECASE),
    re.compile(r"([^,;]+?) (?:settles with EPA|agrees to pay|to pay penalty)", re.IGNORECASE),
    re.compile(r"^([^:]+):"),
]

_FACILITY_RE = re.compile(r"\b(facility|plant|factory|refinery|site) ([^,;.]+)", re.IGNORECASE)

_ACTION_TYPES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("settlement", "settles"), "settlement"),
    (("penalty", "fine"), "penalty"),
    (("consent decree",), "consent_decree"),
    (("enforcement",), "enforcement_action"),
    (("violation",), "violation_notice"),
    (("warning",), "warning"),
)

_SIGNIFICANCE: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("million", "significant", "major"), "significant"),
    (("criminal", "felony"), "significant"),
    (("notice", "warning"), "routine"),
)

_MEDIA: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("air", "emission"), "Air"),
    (("water", "discharge"), "Water"),
    (("waste", "hazardous"), "Waste"),
    (("chemical", "toxic"), "Chemical"),
    (("soil", "groundwater"), "Land"),
)

_ENFORCEMENT_TITLE_TERMS = ("enforcement", "penalty", "settlement", "violation", "consent decree")
_ENFORCEMENT_DESCRIPTION_TERMS = ("enforcement", "penalty", "violation")


def clean_text(value: Optional[str]) -> str:
    """Strip CDATA wrappers, markup and entities, then collapse whitespace."""
    if not value:
        return ""
    text = _CDATA_RE.sub(r"\1", value)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def _first_match(text: str, table: Sequence[Tuple[Tuple[str, ...], str]], default: str) -> str:
    lowered = text.lower()
    for keywords, label in table:
        if any(k in lowered for k in keywords):
            return label
    return default


def determine_action_type(title: str, description: str = "") -> str:
    return _first_match(f"{title} {description}", _ACTION_TYPES, "enforcement_action")


def determine_significance(title: str, description: str = "") -> str:
    return _first_match(f"{title} {description}", _SIGNIFICANCE, "moderate")


def is_enforcement_item(title: str, description: str = "") -> bool:
    title_l = title.lower()
    description_l = description.lower()
    return any(t in title_l for t in _ENFORCEMENT_TITLE_TERMS) or any(
        t in description_l for t in _ENFORCEMENT_DESCRIPTION_TERMS
    )


def extract_penalty_amount(text: Optional[str]) -> Optional[float]:
    """Dollar amount of the first ``$N[ million|thousand]`` mention.

    >>> extract_penalty_amount("agreed to pay $2.5 million civil penalty")
    2500000.0
    """
    if not text:
        return None
    match = _PENALTY_RE.search(text)
    if not match:
        return None
    try:
        amount = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    scale = match.group(2)
    if scale:
        amount *= _SCALE[scale.lower()]
    return amount


def extract_environmental_media(text: Optional[str]) -> List[str]:
    if not text:
        return []
    lowered = text.lower()
    return [label for keywords, label in _MEDIA if any(k in lowered for k in keywords)]


def extract_violations(text: Optional[str]) -> List[str]:
    if not text:
        return []
    found: List[str] = []
    for pattern in _VIOLATION_PATTERNS:
        for match in pattern.finditer(text):
            violation = match.group(1).strip()
            if violation and violation not in found:
                found.append(violation)
    return found


def extract_defendant(title: str, description: str = "") -> str:
    """Best guess at the party named in an enforcement headline."""
    for text in (title, description):
        if not text:
            continue
        for pattern in _DEFENDANT_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return match.group(1).strip()
    return " ".join(title.split()[:5])


def extract_facility(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = _FACILITY_RE.search(text)
    if not match:
        return None
    return f"{match.group(1)} {match.group(2).strip()}"
