"""Runtime services shared by the pallets: origins, the event log and balances."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Hashable, Iterable, Mapping


class DispatchError(Exception):
    """Base class of every error raised by a dispatchable call."""


class BadOrigin(DispatchError):
    """The call was made from an origin it does not accept."""


class InsufficientBalance(DispatchError):
    """The account does not hold enough free balance."""


class LiquidityRestrictions(DispatchError):
    """The operation would take the free balance below an active lock."""


class OriginKind(enum.Enum):
    ROOT = "root"
    SIGNED = "signed"
    NONE = "none"


@dataclass(frozen=True)
class Origin:
    """Who dispatched a call."""

    kind: OriginKind
    account: Hashable | None = None

    @classmethod
    def signed(cls, account: Hashable) -> "Origin":
        return cls(OriginKind.SIGNED, account)

    @classmethod
    def root(cls) -> "Origin":
        return cls(OriginKind.ROOT)

    @classmethod
    def none(cls) -> "Origin":
        return cls(OriginKind.NONE)


def ensure_signed(origin: Origin) -> Hashable:
    """Return the signing account, or raise BadOrigin."""
    if origin.kind is not OriginKind.SIGNED:
        raise BadOrigin("a signed origin is required")
    return origin.account


def ensure_none(origin: Origin) -> None:
    """Raise BadOrigin unless the origin is unsigned."""
    if origin.kind is not OriginKind.NONE:
        raise BadOrigin("an unsigned origin is required")


class Phase(enum.Enum):
    INITIALIZATION = "initialization"
    APPLY_EXTRINSIC = "apply_extrinsic"
    FINALIZATION = "finalization"


@dataclass(frozen=True)
class EventRecord:
    phase: Phase
    event: Any
    topics: tuple = ()


class System:
    """Block number and the log of events deposited during the block."""

    def __init__(self, block_number: int = 0) -> None:
        self.block_number = block_number
        self.phase = Phase.INITIALIZATION
        self._events: list[EventRecord] = []

    def set_block_number(self, number: int) -> None:
        self.block_number = number

    def deposit_event(self, event: Any) -> None:
        """Record an event; nothing is recorded at the genesis block."""
        if self.block_number == 0:
            return
        self._events.append(EventRecord(self.phase, event))

    def events(self) -> list[EventRecord]:
        return list(self._events)

    def reset_events(self) -> None:
        self._events.clear()

    def run_to_block(self, number: int) -> None:
        """Advance the block number up to ``number``; never goes backwards."""
        while self.block_number < number:
            self.block_number += 1


@dataclass(frozen=True)
class Endowed:
    account: Hashable
    free_balance: int


@dataclass(frozen=True)
class Transfer:
    source: Hashable
    dest: Hashable
    amount: int


@dataclass(frozen=True)
class Reserved:
    account: Hashable
    amount: int


@dataclass(frozen=True)
class Unreserved:
    account: Hashable
    amount: int


@dataclass(frozen=True)
class _Account:
    free: int = 0
    reserved: int = 0

    @property
    def total(self) -> int:
        return self.free + self.reserved


class Balances:
    """A currency ledger with reserves, locks and an existential deposit."""

    def __init__(
        self,
        system: System,
        existential_deposit: int = 1,
        balances: Mapping[Hashable, int] | Iterable[tuple[Hashable, int]] = (),
    ) -> None:
        self.system = system
        self.existential_deposit = existential_deposit
        self._accounts: dict[Hashable, _Account] = {}
        self._locks: dict[Hashable, dict[bytes, int]] = {}
        items = balances.items() if isinstance(balances, Mapping) else balances
        for who, amount in items:
            if amount < existential_deposit:
                raise ValueError(
                    f"genesis balance of {who!r} is below the existential deposit"
                )
            self._accounts[who] = _Account(free=amount)

    def _account(self, who: Hashable) -> _Account:
        return self._accounts.get(who, _Account())

    def _store(self, who: Hashable, account: _Account) -> None:
        if account.total < self.existential_deposit:
            # The account is reaped and any dust is lost.
            self._accounts.pop(who, None)
        else:
            self._accounts[who] = account

    def _ensure_can_withdraw(self, who: Hashable, new_free: int) -> None:
        frozen = max(self._locks.get(who, {}).values(), default=0)
        if new_free < frozen:
            raise LiquidityRestrictions(f"account {who!r} has {frozen} locked")

    def free_balance(self, who: Hashable) -> int:
        return self._account(who).free

    def reserved_balance(self, who: Hashable) -> int:
        return self._account(who).reserved

    def total_balance(self, who: Hashable) -> int:
        return self._account(who).total

    def deposit_creating(self, who: Hashable, amount: int) -> int:
        """Credit ``amount``, creating the account if needed; return what was credited."""
        if amount == 0:
            return 0
        existed = who in self._accounts
        if not existed and amount < self.existential_deposit:
            return 0
        account = self._account(who)
        updated = replace(account, free=account.free + amount)
        self._accounts[who] = updated
        if not existed:
            self.system.deposit_event(Endowed(who, updated.free))
        return amount

    def withdraw(self, who: Hashable, amount: int) -> int:
        """Debit ``amount`` from the free balance, allowing the account to die."""
        if amount == 0:
            return 0
        account = self._account(who)
        if account.free < amount:
            raise InsufficientBalance(f"account {who!r} cannot pay {amount}")
        new_free = account.free - amount
        self._ensure_can_withdraw(who, new_free)
        self._store(who, replace(account, free=new_free))
        return amount

    def transfer(self, source: Hashable, dest: Hashable, amount: int) -> None:
        if amount == 0 or source == dest:
            return
        src = self._account(source)
        if src.free < amount:
            raise InsufficientBalance(f"account {source!r} cannot pay {amount}")
        new_src_free = src.free - amount
        self._ensure_can_withdraw(source, new_src_free)
        dest_existed = dest in self._accounts
        dst = self._account(dest)
        new_dst = replace(dst, free=dst.free + amount)
        if new_dst.total < self.existential_deposit:
            raise DispatchError("ExistentialDeposit")
        self._store(source, replace(src, free=new_src_free))
        self._accounts[dest] = new_dst
        if not dest_existed:
            self.system.deposit_event(Endowed(dest, new_dst.free))
        self.system.deposit_event(Transfer(source, dest, amount))

    def reserve(self, who: Hashable, amount: int) -> None:
        """Move ``amount`` from the free to the reserved balance."""
        if amount == 0:
            return
        account = self._account(who)
        if account.free < amount:
            raise InsufficientBalance(f"account {who!r} cannot reserve {amount}")
        new_free = account.free - amount
        self._ensure_can_withdraw(who, new_free)
        self._store(who, _Account(new_free, account.reserved + amount))
        self.system.deposit_event(Reserved(who, amount))

    def unreserve(self, who: Hashable, amount: int) -> int:
        """Move up to ``amount`` back to free balance; return the part not unreserved."""
        if amount == 0:
            return 0
        account = self._accounts.get(who)
        if account is None:
            return amount
        actual = min(account.reserved, amount)
        self._store(who, _Account(account.free + actual, account.reserved - actual))
        self.system.deposit_event(Unreserved(who, actual))
        return amount - actual

    def set_lock(self, lock_id: bytes, who: Hashable, amount: int) -> None:
        if amount == 0:
            self.remove_lock(lock_id, who)
            return
        self._locks.setdefault(who, {})[lock_id] = amount

    def extend_lock(self, lock_id: bytes, who: Hashable, amount: int) -> None:
        """Create the lock or raise it to ``amount`` if that is larger."""
        if amount == 0:
            return
        locks = self._locks.setdefault(who, {})
        locks[lock_id] = max(locks.get(lock_id, 0), amount)

    def remove_lock(self, lock_id: bytes, who: Hashable) -> None:
        locks = self._locks.get(who)
        if not locks:
            return
        locks.pop(lock_id, None)
        if not locks:
            del self._locks[who]

    def locks(self, who: Hashable) -> dict[bytes, int]:
        return dict(self._locks.get(who, {}))