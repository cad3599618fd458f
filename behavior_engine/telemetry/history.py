"""
Bounded History Store — one ring per event category.

Rings trim in batches: the backing deque may grow to ``slack * capacity``
before it is cut back to ``capacity`` from the newest end. Readers only ever
see the newest ``capacity`` items, so the visible size never exceeds capacity.
"""

from __future__ import annotations

import logging
from collections import deque
from itertools import islice
from typing import Deque, Dict, Generic, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Ring(Generic[T]):
    """Capacity-bounded, oldest-first evicting sequence of timestamped records."""

    def __init__(self, capacity: int, slack: float = 1.0, name: str = "ring"):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.name = name
        self._limit = max(int(capacity * max(slack, 1.0)), capacity)
        self._items: Deque[T] = deque()
        self.truncations = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, item: T) -> bool:
        """Append *item*; return True if this append triggered a batched trim."""
        self._items.append(item)
        if len(self._items) > self._limit:
            return self.compact()
        return False

    def compact(self) -> bool:
        """Cut the backing store down to capacity. Returns True if anything was dropped."""
        excess = len(self._items) - self.capacity
        if excess <= 0:
            return False
        for _ in range(excess):
            self._items.popleft()
        self.truncations += 1
        logger.debug("Trimmed %s by %d records", self.name, excess)
        return True

    def drop_older_than(self, cutoff: float) -> int:
        """Drop records with timestamp <= cutoff. Assumes non-decreasing timestamps."""
        dropped = 0
        while self._items and self._items[0].timestamp <= cutoff:  # type: ignore[attr-defined]
            self._items.popleft()
            dropped += 1
        return dropped

    def clear(self) -> None:
        self._items.clear()
        self.truncations = 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return min(len(self._items), self.capacity)

    def __iter__(self) -> Iterator[T]:
        skip = len(self._items) - self.capacity
        return islice(self._items, max(skip, 0), None)

    def items(self) -> List[T]:
        return list(self)

    def last(self) -> Optional[T]:
        return self._items[-1] if self._items else None

    def newest_first(self, limit: Optional[int] = None) -> Iterator[T]:
        n = len(self) if limit is None else min(limit, len(self))
        return islice(reversed(self._items), n)

    def recent(self, n: int) -> List[T]:
        """The newest *n* records, oldest first."""
        out = list(self.newest_first(n))
        out.reverse()
        return out

    def since(self, cutoff: float) -> List[T]:
        """Records with timestamp >= cutoff, oldest first."""
        out: List[T] = []
        for item in self.newest_first():
            if item.timestamp < cutoff:  # type: ignore[attr-defined]
                break
            out.append(item)
        out.reverse()
        return out


class HistoryStore:
    """Per-category rings for keys, pointer, focus and scroll records."""

    CATEGORIES = ("keys", "pointer", "focus", "scroll")
    AGED = ("keys", "pointer")   # categories subject to the age sweep

    def __init__(self, capacities: Dict[str, int], slack: float = 1.1):
        self._rings: Dict[str, Ring] = {
            name: Ring(capacities[name], slack=slack, name=name)
            for name in self.CATEGORIES
        }

    @property
    def keys(self) -> Ring:
        return self._rings["keys"]

    @property
    def pointer(self) -> Ring:
        return self._rings["pointer"]

    @property
    def focus(self) -> Ring:
        return self._rings["focus"]

    @property
    def scroll(self) -> Ring:
        return self._rings["scroll"]

    def ring(self, category: str) -> Ring:
        return self._rings[category]

    def append(self, category: str, record) -> bool:
        return self._rings[category].append(record)

    def sweep(self, now: float, retention_ms: float) -> int:
        """
        Compact every ring to capacity, then drop key and pointer records older
        than the retention horizon. Returns the number of rings that were trimmed.
        """
        trimmed = sum(1 for ring in self._rings.values() if ring.compact())
        cutoff = now - retention_ms
        for name in self.AGED:
            dropped = self._rings[name].drop_older_than(cutoff)
            if dropped:
                logger.debug("Age sweep dropped %d %s records", dropped, name)
        return trimmed

    def sizes(self) -> Dict[str, int]:
        return {name: len(ring) for name, ring in self._rings.items()}

    def capacities(self) -> Dict[str, int]:
        return {name: ring.capacity for name, ring in self._rings.items()}

    def truncations(self) -> Dict[str, int]:
        return {name: ring.truncations for name, ring in self._rings.items()}

    def clear(self) -> None:
        for ring in self._rings.values():
            ring.clear()
