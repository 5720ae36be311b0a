"""Index snapshots and the bounded query-result cache."""

from __future__ import annotations

import bisect
from collections import OrderedDict
from collections.abc import Hashable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading
import time
from typing import Generic, TypeVar

from cms_search.domain.model import Item
from cms_search.search.index import SearchIndex


logger = logging.getLogger(__name__)

V = TypeVar("V")


def same_corpus(left: Sequence[Item], right: Sequence[Item]) -> bool:
    """True when both sequences hold equal items in the same order.

    Items compare by value, so a repository that re-parses its files into
    fresh objects still reuses the current snapshot.
    """

    if len(left) != len(right):
        return False
    return all(a is b or a == b for a, b in zip(left, right))


@dataclass(frozen=True)
class IndexSnapshot:
    """An immutable index plus the corpus it was built from.

    ``recency_edges`` are the sorted instants at which some item crosses a
    recency bracket; scores cached between two edges stay valid.
    """

    index: SearchIndex
    items: tuple[Item, ...]
    version: int
    recency_edges: tuple[datetime, ...] = ()
    built_at: float = field(default_factory=time.time)

    def matches(self, items: Sequence[Item]) -> bool:
        return same_corpus(self.items, items)

    def recency_epoch(self, now: datetime) -> int:
        """Number of bracket edges already passed at ``now``."""
        return bisect.bisect_right(self.recency_edges, now)


@dataclass
class CacheMetrics:
    """Lightweight counters for cache instrumentation."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    capacity: int = 0

    def snapshot(self) -> dict[str, float | int]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "capacity": self.capacity,
            "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
        }


class ResultCache(Generic[V]):
    """Bounded mapping evicting the oldest inserted entry when full.

    Reads do not refresh an entry's position. A capacity of 0 disables
    caching entirely.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, V] = OrderedDict()
        self._lock = threading.Lock()
        self._metrics = CacheMetrics(capacity=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._metrics.misses += 1
            else:
                self._metrics.hits += 1
            return value

    def put(self, key: Hashable, value: V) -> None:
        if self.capacity == 0:
            return
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                return
            while len(self._entries) >= self.capacity:
                self._entries.popitem(last=False)
                self._metrics.evictions += 1
            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        if dropped:
            logger.debug("Cleared %d cached search results", dropped)

    def metrics(self) -> dict[str, float | int]:
        with self._lock:
            self._metrics.size = len(self._entries)
            return self._metrics.snapshot()
