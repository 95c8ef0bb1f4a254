"""Response cache abstraction injected into each adapter's policy."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Protocol

from cachetools import TTLCache


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


class TTLResponseCache:
    """In-memory cache where every entry expires ``ttl`` seconds after it is set.

    When full, expired entries go first, then the least recently used.
    """

    def __init__(self, ttl: float, maxsize: int = 512, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=clock)

    def get(self, key: str) -> Optional[Any]:
        return self._cache.get(key)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)
