"""A pallet that keeps a bounded set of member accounts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from palletry.runtime import DispatchError, Origin, System, ensure_signed

MAX_MEMBERS = 16
"""When membership reaches this number, no new members may join."""


class AlreadyMember(DispatchError):
    """Cannot join as a member because the caller already is one."""


class NotMember(DispatchError):
    """Cannot give up membership because the caller is not a member."""


class MembershipLimitReached(DispatchError):
    """Cannot add another member because the limit is already reached."""


@dataclass(frozen=True)
class MemberAdded:
    account: Hashable


@dataclass(frozen=True)
class MemberRemoved:
    account: Hashable


class MapSet:
    """Membership stored as a hashed set, so lookups are constant time."""

    def __init__(self, system: System) -> None:
        self.system = system
        self._members: set[Hashable] = set()

    @property
    def member_count(self) -> int:
        return len(self._members)

    def add_member(self, origin: Origin) -> None:
        """Add the caller to the membership set."""
        new_member = ensure_signed(origin)
        if self.member_count >= MAX_MEMBERS:
            raise MembershipLimitReached(f"the set already has {MAX_MEMBERS} members")
        if new_member in self._members:
            raise AlreadyMember(f"{new_member!r} is already a member")
        self._members.add(new_member)
        self.system.deposit_event(MemberAdded(new_member))

    def remove_member(self, origin: Origin) -> None:
        """Remove the caller from the membership set."""
        old_member = ensure_signed(origin)
        if old_member not in self._members:
            raise NotMember(f"{old_member!r} is not a member")
        self._members.remove(old_member)
        self.system.deposit_event(MemberRemoved(old_member))

    def is_member(self, account: Hashable) -> bool:
        return account in self._members

    def accounts(self) -> list:
        """All member accounts in ascending order."""
        return sorted(self._members)