"""A pallet that emits an event carrying the number it was given."""

from __future__ import annotations

from dataclasses import dataclass

from palletry.runtime import Origin, System, ensure_signed


@dataclass(frozen=True)
class EmitInput:
    value: int


class SimpleEvent:
    def __init__(self, system: System) -> None:
        self.system = system

    def do_something(self, origin: Origin, input: int) -> None:
        """Emit ``input`` in an event; requires a signed origin."""
        ensure_signed(origin)
        self.system.deposit_event(EmitInput(input))