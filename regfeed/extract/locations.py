"""US state and EPA region lookups for free-text agency fields."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Set

STATE_NAMES: Dict[str, str] = {
    "Alabama": "AL",
    "Alaska": "AK",
    "Arizona": "AZ",
    "Arkansas": "AR",
    "California": "CA",
    "Colorado": "CO",
    "Connecticut": "CT",
    "Delaware": "DE",
    "District of Columbia": "DC",
    "Florida": "FL",
    "Georgia": "GA",
    "Hawaii": "HI",
    "Idaho": "ID",
    "Illinois": "IL",
    "Indiana": "IN",
    "Iowa": "IA",
    "Kansas": "KS",
    "Kentucky": "KY",
    "Louisiana": "LA",
    "Maine": "ME",
    "Maryland": "MD",
    "Massachusetts": "MA",
    "Michigan": "MI",
    "Minnesota": "MN",
    "Mississippi": "MS",
    "Missouri": "MO",
    "Montana": "MT",
    "Nebraska": "NE",
    "Nevada": "NV",
    "New Hampshire": "NH",
    "New Jersey": "NJ",
    "New Mexico": "NM",
    "New York": "NY",
    "North Carolina": "NC",
    "North Dakota": "ND",
    "Ohio": "OH",
    "Oklahoma": "OK",
    "Oregon": "OR",
    "Pennsylvania": "PA",
    "Rhode Island": "RI",
    "South Carolina": "SC",
    "South Dakota": "SD",
    "Tennessee": "TN",
    "Texas": "TX",
    "Utah": "UT",
    "Vermont": "VT",
    "Virginia": "VA",
    "Washington": "WA",
    "West Virginia": "WV",
    "Wisconsin": "WI",
    "Wyoming": "WY",
    "Puerto Rico": "PR",
    "Guam": "GU",
    "American Samoa": "AS",
    "U.S. Virgin Islands": "VI",
}

STATE_CODES: Set[str] = set(STATE_NAMES.values())

EPA_REGIONS: Dict[int, List[str]] = {
    1: ["CT", "ME", "MA", "NH", "RI", "VT"],
    2: ["NJ", "NY", "PR", "VI"],
    3: ["DE", "DC", "MD", "PA", "VA", "WV"],
    4: ["AL", "FL", "GA", "KY", "MS", "NC", "SC", "TN"],
    5: ["IL", "IN", "MI", "MN", "OH", "WI"],
    6: ["AR", "LA", "NM", "OK", "TX"],
    7: ["IA", "KS", "MO", "NE"],
    8: ["CO", "MT", "ND", "SD", "UT", "WY"],
    9: ["AZ", "CA", "HI", "NV", "AS", "GU"],
    10: ["AK", "ID", "OR", "WA"],
}

_STATE_TO_REGION: Dict[str, str] = {
    code: f"Region {region}" for region, codes in EPA_REGIONS.items() for code in codes
}

# Longest names first so "West Virginia" wins over "Virginia"
_NAME_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(n) for n in sorted(STATE_NAMES, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_CODE_PATTERN = re.compile(r"\b([A-Z]{2})\b")
_NAME_LOOKUP = {name.lower(): code for name, code in STATE_NAMES.items()}


def _iter_state_matches(text: str) -> Iterable[tuple[int, str]]:
    for match in _NAME_PATTERN.finditer(text):
        yield match.start(), _NAME_LOOKUP[match.group(1).lower()]
    for match in _CODE_PATTERN.finditer(text):
        if match.group(1) in STATE_CODES:
            yield match.start(), match.group(1)


def extract_state(text: Optional[str]) -> Optional[str]:
    """Two-letter code of the first state named or abbreviated in ``text``."""
    if not text:
        return None
    matches = sorted(_iter_state_matches(text))
    return matches[0][1] if matches else None


def extract_locations(text: Optional[str]) -> List[str]:
    """Every state mentioned in ``text``, as sorted unique two-letter codes."""
    if not text:
        return []
    return sorted({code for _, code in _iter_state_matches(text)})


def extract_state_codes(distribution_pattern: Optional[str]) -> List[str]:
    """State codes embedded in a recall distribution string like "CA, NV and AZ"."""
    if not distribution_pattern:
        return []
    return sorted({m for m in _CODE_PATTERN.findall(distribution_pattern) if m in STATE_CODES})


def state_to_region(state: Optional[str]) -> Optional[str]:
    if not state:
        return None
    return _STATE_TO_REGION.get(state.strip().upper())
