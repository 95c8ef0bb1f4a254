"""Construction and lookup of the configured source adapters."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Literal, Optional

from regfeed.core.logging import get_logger
from regfeed.ingestion.base import BaseSourceAdapter
from regfeed.ingestion.cdc import CDCAdapter
from regfeed.ingestion.epa import EPAAdapter
from regfeed.ingestion.fda import FDAAdapter
from regfeed.ingestion.fsis import FSISAdapter
from regfeed.ingestion.regulations_gov import RegulationsGovAdapter

log = get_logger("ingestion.registry")

SourceName = Literal["fda", "fsis", "cdc", "epa", "regulations_gov"]
SOURCE_NAMES: tuple[str, ...] = ("fda", "fsis", "cdc", "epa", "regulations_gov")

ADAPTER_CLASSES = {
    "fda": FDAAdapter,
    "fsis": FSISAdapter,
    "cdc": CDCAdapter,
    "epa": EPAAdapter,
    "regulations_gov": RegulationsGovAdapter,
}


def build_default_adapters(sources: Optional[Iterable[str]] = None, **adapter_kwargs: Any) -> List[BaseSourceAdapter]:
    """One adapter per source with its default config from settings.

    ``adapter_kwargs`` (e.g. ``transport``, ``clock``) are passed to every adapter.
    """
    names = list(sources) if sources is not None else list(SOURCE_NAMES)
    adapters: List[BaseSourceAdapter] = []
    for name in names:
        if name not in ADAPTER_CLASSES:
            raise ValueError(f"Unknown source: {name}. Must be one of: {', '.join(SOURCE_NAMES)}")
        adapters.append(ADAPTER_CLASSES[name](**adapter_kwargs))
    return adapters


class SourceAdapterRegistry:
    """Holds one adapter instance per source name."""

    def __init__(self, adapters: Iterable[BaseSourceAdapter]):
        self._adapters: Dict[str, BaseSourceAdapter] = {}
        for adapter in adapters:
            if adapter.name in self._adapters:
                raise ValueError(f"Duplicate adapter for source {adapter.name}")
            self._adapters[adapter.name] = adapter

    @classmethod
    def from_settings(cls, sources: Optional[Iterable[str]] = None, **adapter_kwargs: Any) -> "SourceAdapterRegistry":
        return cls(build_default_adapters(sources, **adapter_kwargs))

    def get(self, name: str) -> BaseSourceAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise ValueError(f"Unsupported source: {name}. Must be one of: {', '.join(self._adapters)}") from None

    def sources(self) -> List[str]:
        return list(self._adapters)

    def adapters(self) -> List[BaseSourceAdapter]:
        return list(self._adapters.values())

    def health(self) -> Dict[str, Dict[str, Any]]:
        """Breaker state per source; ``available`` is False while a circuit is open."""
        return {name: adapter.health() for name, adapter in self._adapters.items()}

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()
        log.info("Closed all source adapters")
