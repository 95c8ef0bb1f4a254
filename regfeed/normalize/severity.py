"""Per-source severity scores on a 0-100 scale.

Every function is total: unknown or empty input maps to ``DEFAULT_SEVERITY``.
"""

from __future__ import annotations

from typing import Optional

DEFAULT_SEVERITY = 50

_CLASS_SCORES = {
    "class i": 90,
    "class ii": 60,
    "class iii": 30,
}

_RISK_SCORES = {
    "high": 85,
    "medium": 55,
    "low": 25,
}

_URGENCY_SCORES = {
    "high": 80,
    "medium": 50,
    "low": 20,
}


def _key(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def severity_for_fda(classification: Optional[str]) -> int:
    return _CLASS_SCORES.get(_key(classification), DEFAULT_SEVERITY)


def severity_for_fsis(recall_class: Optional[str]) -> int:
    """Class I/II/III or High/Medium/Low, including "High - Class I" risk levels."""
    key = _key(recall_class)
    if key in _CLASS_SCORES:
        return _CLASS_SCORES[key]
    if key in _RISK_SCORES:
        return _RISK_SCORES[key]
    leading = key.split(" - ")[0].strip()
    if leading in _RISK_SCORES:
        return _RISK_SCORES[leading]
    return DEFAULT_SEVERITY


def severity_for_cdc(status: Optional[str], alert_type: Optional[str]) -> int:
    status_l = _key(status)
    type_l = _key(alert_type)
    if "active" in status_l or "ongoing" in status_l:
        return 70
    if "closed" in status_l or "resolved" in status_l:
        return 40
    if type_l == "outbreak":
        return 75
    if type_l in ("advisory", "guidance"):
        return 50
    if type_l == "recall":
        return 80
    return DEFAULT_SEVERITY


def severity_for_epa(action_type: Optional[str], significance: Optional[str]) -> int:
    action = _key(action_type)
    significance_l = _key(significance)
    if "significant" in significance_l or "enforcement" in action:
        return 80
    if "violation" in action or "penalty" in action:
        return 75
    if "notice" in action or "warning" in action:
        return 40
    if "settlement" in action or "consent" in action:
        return 60
    return DEFAULT_SEVERITY


def severity_for_regulations_gov(urgency: Optional[str]) -> int:
    return _URGENCY_SCORES.get(_key(urgency), DEFAULT_SEVERITY)
