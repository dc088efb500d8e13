"""A pallet that remembers the last account to call it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from palletry.runtime import Origin, System, ensure_signed


@dataclass(frozen=True)
class Called:
    account: Hashable


class LastCaller:
    def __init__(self, system: System) -> None:
        self.system = system
        self.caller: Hashable | None = None

    def call(self, origin: Origin) -> None:
        """Store the signing account as the last caller and emit an event."""
        caller = ensure_signed(origin)
        self.caller = caller
        self.system.deposit_event(Called(caller))