"""Fixed-capacity ring buffer with oldest-first eviction."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from itertools import islice
from typing import Generic, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Bounded deque that reports what it evicts.

    Appending to a full buffer drops the oldest item. Iteration yields
    items oldest to newest.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._items: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen  # type: ignore[return-value]

    def __len__(self) -> int:
        return len(self._items)

    def append(self, item: T) -> T | None:
        """Store *item* and return the evicted item, if any."""
        # deque drops the head silently, so read it first
        evicted = self._items[0] if len(self._items) == self._items.maxlen else None
        self._items.append(item)
        return evicted

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def newest(self, limit: int) -> list[T]:
        """Return up to *limit* items, newest first."""
        return list(islice(reversed(self._items), max(0, limit)))

    def clear(self) -> None:
        self._items.clear()
