"""A pallet that locks, extends and releases a caller's funds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from palletry.runtime import Balances, Origin, System, ensure_signed

EXAMPLE_ID = b"example "


@dataclass(frozen=True)
class Locked:
    account: Hashable
    amount: int


@dataclass(frozen=True)
class ExtendedLock:
    account: Hashable
    amount: int


@dataclass(frozen=True)
class Unlocked:
    account: Hashable


class LockableCurrency:
    def __init__(self, system: System, currency: Balances) -> None:
        self.system = system
        self.currency = currency

    def lock_capital(self, origin: Origin, amount: int) -> None:
        """Lock ``amount`` of the caller's funds, replacing any previous lock."""
        user = ensure_signed(origin)
        self.currency.set_lock(EXAMPLE_ID, user, amount)
        self.system.deposit_event(Locked(user, amount))

    def extend_lock(self, origin: Origin, amount: int) -> None:
        """Raise the caller's lock to ``amount`` if that is larger."""
        user = ensure_signed(origin)
        self.currency.extend_lock(EXAMPLE_ID, user, amount)
        self.system.deposit_event(ExtendedLock(user, amount))

    def unlock_all(self, origin: Origin) -> None:
        """Release the caller's lock."""
        user = ensure_signed(origin)
        self.currency.remove_lock(EXAMPLE_ID, user)
        self.system.deposit_event(Unlocked(user))