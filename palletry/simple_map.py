"""A pallet that keeps one unsigned 32-bit entry per account."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from palletry.runtime import DispatchError, Origin, System, ensure_signed

_U32_MAX = 0xFFFF_FFFF


class NoValueStored(DispatchError):
    """The requested user has not stored a value yet."""


class MaxValueReached(DispatchError):
    """The value cannot be incremented further."""


@dataclass(frozen=True)
class EntrySet:
    account: Hashable
    entry: int


@dataclass(frozen=True)
class EntryGot:
    account: Hashable
    entry: int


@dataclass(frozen=True)
class EntryTaken:
    account: Hashable
    entry: int


@dataclass(frozen=True)
class EntryIncreased:
    account: Hashable
    old_entry: int
    new_entry: int


def _check_u32(value: int, name: str) -> None:
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"{name} must be an unsigned 32-bit integer")


class SimpleMap:
    def __init__(self, system: System) -> None:
        self.system = system
        self._entries: dict[Hashable, int] = {}

    def simple_map(self, account: Hashable) -> int:
        """The entry stored for ``account``, or 0 if there is none."""
        return self._entries.get(account, 0)

    def _require_entry(self, account: Hashable) -> int:
        try:
            return self._entries[account]
        except KeyError:
            raise NoValueStored(f"no value stored for {account!r}") from None

    def set_single_entry(self, origin: Origin, entry: int) -> None:
        """Set the caller's own entry."""
        user = ensure_signed(origin)
        _check_u32(entry, "entry")
        self._entries[user] = entry
        self.system.deposit_event(EntrySet(user, entry))

    def get_single_entry(self, origin: Origin, account: Hashable) -> None:
        """Read any account's entry and emit it, attributed to the caller."""
        getter = ensure_signed(origin)
        entry = self._require_entry(account)
        self.system.deposit_event(EntryGot(getter, entry))

    def take_single_entry(self, origin: Origin) -> None:
        """Remove the caller's entry and emit the removed value."""
        user = ensure_signed(origin)
        entry = self._require_entry(user)
        del self._entries[user]
        self.system.deposit_event(EntryTaken(user, entry))

    def increase_single_entry(self, origin: Origin, add_this_val: int) -> None:
        """Add to the caller's entry, raising MaxValueReached on overflow."""
        user = ensure_signed(origin)
        _check_u32(add_this_val, "add_this_val")
        original = self._require_entry(user)
        new_value = original + add_this_val
        if new_value > _U32_MAX:
            raise MaxValueReached(f"entry of {user!r} cannot exceed {_U32_MAX}")
        self._entries[user] = new_value
        self.system.deposit_event(EntryIncreased(user, original, new_value))