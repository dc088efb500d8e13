"""A pallet that keeps a queue of values in a ring buffer held in storage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from palletry.ringbuffer import RingBufferStorage, RingBufferTransient
from palletry.runtime import Origin, System, ensure_signed

_INDEX_BITS = 8
_I32_MIN = -(1 << 31)
_I32_MAX = (1 << 31) - 1


@dataclass(frozen=True)
class ValueStruct:
    integer: int = 0
    boolean: bool = False


@dataclass(frozen=True)
class Popped:
    integer: int
    boolean: bool


def _check_i32(value: int) -> None:
    if not _I32_MIN <= value <= _I32_MAX:
        raise ValueError("integer must be a signed 32-bit value")


class RingBufferQueue:
    """A queue of ``ValueStruct`` items whose indices wrap at 256."""

    def __init__(self, system: System) -> None:
        self.system = system
        self._storage = RingBufferStorage()

    def _queue(self) -> RingBufferTransient:
        return RingBufferTransient(self._storage, _INDEX_BITS)

    def add_to_queue(self, origin: Origin, integer: int, boolean: bool) -> None:
        """Push one item; only signed origins may push."""
        ensure_signed(origin)
        _check_i32(integer)
        with self._queue() as queue:
            queue.push(ValueStruct(integer, boolean))

    def add_multiple(
        self, origin: Origin, integers: Iterable[int], boolean: bool
    ) -> None:
        """Push one item for each integer, all sharing ``boolean``."""
        ensure_signed(origin)
        values = list(integers)
        for integer in values:
            _check_i32(integer)
        with self._queue() as queue:
            for integer in values:
                queue.push(ValueStruct(integer, boolean))

    def pop_from_queue(self, origin: Origin) -> None:
        """Pop the oldest item and emit it; an empty queue emits nothing."""
        ensure_signed(origin)
        with self._queue() as queue:
            item = queue.pop()
        if item is not None:
            self.system.deposit_event(Popped(item.integer, item.boolean))

    def get_value(self, index: int) -> ValueStruct:
        """The item stored at ``index``, or the default value if there is none."""
        return self._storage.items.get(index, ValueStruct())

    def range(self) -> tuple[int, int]:
        """The stored ``(start, end)`` bounds of the queue."""
        return self._storage.range