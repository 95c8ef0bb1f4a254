"""Product type extraction for FDA and FSIS recalls."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

_FDA_KEYWORDS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("drug", "medication"), "Drug"),
    (("device",), "Medical Device"),
    (("food", "dietary"), "Food"),
    (("cosmetic",), "Cosmetic"),
)

_FSIS_KEYWORDS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("beef", "cattle"), "Beef"),
    (("pork", "swine"), "Pork"),
    (("chicken", "poultry"), "Poultry"),
    (("turkey",), "Turkey"),
    (("fish", "seafood"), "Seafood"),
    (("egg",), "Eggs"),
)


def _keyword_labels(text: str, table: Sequence[Tuple[Tuple[str, ...], str]]) -> Iterable[str]:
    lowered = text.lower()
    for keywords, label in table:
        if any(k in lowered for k in keywords):
            yield label


def extract_fda_product_types(product_type: Optional[str], description: Optional[str] = None) -> List[str]:
    types = set()
    if product_type and product_type.strip():
        types.add(product_type.strip())
    if description:
        types.update(_keyword_labels(description, _FDA_KEYWORDS))
    return sorted(types)


def extract_fsis_product_types(product_name: Optional[str]) -> List[str]:
    if not product_name:
        return []
    return sorted(set(_keyword_labels(product_name, _FSIS_KEYWORDS)))
