"""Urgency vocabulary for Regulations.gov documents."""

from __future__ import annotations

from typing import Literal, Optional

Urgency = Literal["High", "Medium", "Low"]

HIGH_URGENCY_TERMS = (
    "recall",
    "emergency",
    "immediate",
    "urgent",
    "critical",
    "danger",
    "hazard",
    "death",
    "injury",
    "contamination",
    "outbreak",
    "violation",
    "enforcement",
    "penalty",
    "warning",
    "alert",
)

MEDIUM_URGENCY_TERMS = (
    "rule",
    "regulation",
    "compliance",
    "requirement",
    "standard",
    "guideline",
    "policy",
    "proposed",
    "final",
    "effective",
)


def classify_urgency(title: Optional[str], summary: Optional[str] = None) -> Urgency:
    text = f"{title or ''} {summary or ''}".lower()
    if any(term in text for term in HIGH_URGENCY_TERMS):
        return "High"
    if any(term in text for term in MEDIUM_URGENCY_TERMS):
        return "Medium"
    return "Low"
