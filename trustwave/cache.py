"""Time-bounded cache shared by the trust and aggregation layers."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[V]):
    value: V
    computed_at: float
    ttl: float


class TTLCache(Generic[V]):
    """Key to ``(value, computed_at)`` map with per-entry staleness windows.

    Entries are replaced wholesale on every write. ``clock`` is injectable so
    callers can control time.
    """

    def __init__(self, default_ttl: float = 300.0, clock: Clock = time.monotonic) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[V]] = {}

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.computed_at >= entry.ttl:
            logger.debug("Cache entry %r is stale", key)
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(value=value, computed_at=self._clock(), ttl=self.default_ttl if ttl is None else ttl)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop tuple keys whose first element equals ``prefix``."""

        doomed = [key for key in self._entries if _key_prefix(key) == prefix]
        for key in doomed:
            del self._entries[key]
        return len(doomed)


def _key_prefix(key: Hashable) -> Optional[Hashable]:
    if isinstance(key, tuple):
        return key[0] if key else None
    return key


__all__ = ["CacheEntry", "TTLCache", "Clock"]
