"""A pallet whose event carries the calling account along with the input."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from palletry.runtime import Origin, System, ensure_signed


@dataclass(frozen=True)
class EmitInput:
    account: Hashable
    value: int


class GenericEvent:
    def __init__(self, system: System) -> None:
        self.system = system

    def do_something(self, origin: Origin, input: int) -> None:
        """Emit the caller and ``input`` in an event."""
        user = ensure_signed(origin)
        self.system.deposit_event(EmitInput(user, input))