"""A pallet that reserves, releases and transfers a caller's funds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable

from palletry.runtime import Balances, DispatchError, Origin, System, ensure_signed


@dataclass(frozen=True)
class LockFunds:
    account: Hashable
    amount: int
    block_number: int


@dataclass(frozen=True)
class UnlockFunds:
    account: Hashable
    amount: int
    block_number: int


@dataclass(frozen=True)
class TransferFunds:
    source: Hashable
    dest: Hashable
    amount: int
    block_number: int


class ReservableCurrency:
    def __init__(self, system: System, currency: Balances) -> None:
        self.system = system
        self.currency = currency

    def reserve_funds(self, origin: Origin, amount: int) -> None:
        """Reserve ``amount`` of the caller's funds."""
        locker = ensure_signed(origin)
        try:
            self.currency.reserve(locker, amount)
        except DispatchError as exc:
            raise DispatchError(
                "locker can't afford to lock the amount requested"
            ) from exc
        self.system.deposit_event(LockFunds(locker, amount, self.system.block_number))

    def unreserve_funds(self, origin: Origin, amount: int) -> None:
        """Release up to ``amount`` of the caller's reserved funds; never fails."""
        unlocker = ensure_signed(origin)
        self.currency.unreserve(unlocker, amount)
        self.system.deposit_event(
            UnlockFunds(unlocker, amount, self.system.block_number)
        )

    def transfer_funds(self, origin: Origin, dest: Hashable, amount: int) -> None:
        """Transfer free funds from the caller to ``dest``."""
        sender = ensure_signed(origin)
        self.currency.transfer(sender, dest, amount)
        self.system.deposit_event(
            TransferFunds(sender, dest, amount, self.system.block_number)
        )

    def unreserve_and_transfer(
        self, origin: Origin, to_punish: Hashable, dest: Hashable, collateral: int
    ) -> None:
        """Unreserve up to ``collateral`` from ``to_punish`` and send it to ``dest``.

        Any signed account may call this, whoever ``to_punish`` is.
        """
        ensure_signed(origin)
        overdraft = self.currency.unreserve(to_punish, collateral)
        amount = collateral - overdraft
        self.currency.transfer(to_punish, dest, amount)
        self.system.deposit_event(
            TransferFunds(to_punish, dest, amount, self.system.block_number)
        )