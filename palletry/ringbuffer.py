"""A FIFO ring buffer kept in storage and edited through a transient view.

The transient copies the buffer's bounds out of storage when it is made.
Items are written to storage straight away. The bounds are written back only
by ``commit``, which also runs when a ``with`` block around the transient ends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class RingBufferStorage:
    """The stored half of a ring buffer: the ``(start, end)`` bounds and the items."""

    range: tuple[int, int] = (0, 0)
    items: dict[int, Any] = field(default_factory=dict)


class RingBufferTransient:
    """A queue view over a ``RingBufferStorage`` whose indices wrap at ``index_bits``."""

    def __init__(self, storage: RingBufferStorage, index_bits: int = 16) -> None:
        if index_bits <= 0:
            raise ValueError("index_bits must be positive")
        self.storage = storage
        self._mask = (1 << index_bits) - 1
        start, end = storage.range
        if not (0 <= start <= self._mask and 0 <= end <= self._mask):
            raise ValueError("stored bounds do not fit in the index width")
        self.start = start
        self.end = end

    def _next(self, index: int) -> int:
        return (index + 1) & self._mask

    def commit(self) -> None:
        """Write the bounds, which may have changed, back to storage."""
        self.storage.range = (self.start, self.end)

    def push(self, item: Any) -> None:
        """Add an item at the end, overwriting the oldest item when the buffer is full."""
        self.storage.items[self.end] = item
        next_index = self._next(self.end)
        if next_index == self.start:
            # The buffer would look empty, so the oldest item is dropped.
            self.start = self._next(self.start)
        self.end = next_index

    def pop(self) -> Any | None:
        """Remove and return the item at the start, or ``None`` if the buffer is empty."""
        if self.is_empty():
            return None
        item = self.storage.items.pop(self.start, None)
        self.start = self._next(self.start)
        return item

    def is_empty(self) -> bool:
        return self.start == self.end

    def __enter__(self) -> "RingBufferTransient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.commit()