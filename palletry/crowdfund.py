"""A simple on-chain crowdfunding pallet.

Each fund has its own pot account. Contributions are recorded per fund in a
separate contribution table that can be removed in one step once the fund is
settled.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from typing import Hashable

from palletry.runtime import Balances, DispatchError, Origin, System, ensure_signed

PALLET_ID = b"ex/cfund"
_ACCOUNT_PREFIX = b"modl"
_ACCOUNT_LEN = 32
_CHILD_PREFIX = b"crowdfnd"
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


class EndTooEarly(DispatchError):
    """A crowdfund must end after it starts."""


class ContributionTooSmall(DispatchError):
    """A contribution must be at least the minimum amount."""


class InvalidIndex(DispatchError):
    """The fund index does not exist."""


class ContributionPeriodOver(DispatchError):
    """The fund has ended and accepts no more contributions."""


class FundStillActive(DispatchError):
    """Funds cannot be withdrawn or dispensed while the fund is active."""


class NoContribution(DispatchError):
    """The caller has not contributed to this fund."""


class FundNotRetired(DispatchError):
    """The fund has not yet completed its retirement period."""


class UnsuccessfulFund(DispatchError):
    """An unsuccessful fund cannot be dispensed."""


@dataclass(frozen=True)
class FundInfo:
    """The state of one crowdfund."""

    beneficiary: Hashable
    deposit: int
    raised: int
    end: int
    goal: int


@dataclass(frozen=True)
class Created:
    index: int
    block_number: int


@dataclass(frozen=True)
class Contributed:
    account: Hashable
    index: int
    balance: int
    block_number: int


@dataclass(frozen=True)
class Withdrew:
    account: Hashable
    index: int
    balance: int
    block_number: int


@dataclass(frozen=True)
class Retiring:
    index: int
    block_number: int


@dataclass(frozen=True)
class Dissolved:
    index: int
    block_number: int
    account: Hashable


@dataclass(frozen=True)
class Dispensed:
    index: int
    block_number: int
    account: Hashable


class SimpleCrowdfund:
    def __init__(
        self,
        system: System,
        currency: Balances,
        submission_deposit: int,
        min_contribution: int,
        retirement_period: int,
    ) -> None:
        self.system = system
        self.currency = currency
        self.submission_deposit = submission_deposit
        self.min_contribution = min_contribution
        self.retirement_period = retirement_period
        self.fund_count = 0
        self._funds: dict[int, FundInfo] = {}
        self._contributions: dict[bytes, dict[Hashable, int]] = {}

    def _require_fund(self, index: int) -> FundInfo:
        try:
            return self._funds[index]
        except KeyError:
            raise InvalidIndex(f"no fund with index {index}") from None

    def _resolve_into_existing(self, who: Hashable, amount: int) -> None:
        # Funds paid to an account that no longer exists are lost.
        if self.currency.total_balance(who) > 0:
            self.currency.deposit_creating(who, amount)

    def create(
        self, origin: Origin, beneficiary: Hashable, goal: int, end: int
    ) -> None:
        """Open a new fund, taking the submission deposit from the creator."""
        creator = ensure_signed(origin)
        now = self.system.block_number
        if end <= now:
            raise EndTooEarly(f"end {end} is not after the current block {now}")
        deposit = self.submission_deposit
        self.currency.withdraw(creator, deposit)
        index = self.fund_count
        self.fund_count = index + 1
        self.currency.deposit_creating(self.fund_account_id(index), deposit)
        self._funds[index] = FundInfo(beneficiary, deposit, 0, end, goal)
        self.system.deposit_event(Created(index, now))

    def contribute(self, origin: Origin, index: int, value: int) -> None:
        """Contribute ``value`` to an open fund."""
        who = ensure_signed(origin)
        if value < self.min_contribution:
            raise ContributionTooSmall(
                f"contribution must be at least {self.min_contribution}"
            )
        fund = self._require_fund(index)
        now = self.system.block_number
        if fund.end <= now:
            raise ContributionPeriodOver(f"fund {index} ended at block {fund.end}")
        self.currency.transfer(who, self.fund_account_id(index), value)
        self._funds[index] = replace(fund, raised=fund.raised + value)
        balance = min(self.contribution_get(index, who) + value, _U64_MAX)
        self.contribution_put(index, who, balance)
        self.system.deposit_event(Contributed(who, index, balance, now))

    def withdraw(self, origin: Origin, index: int) -> None:
        """Return the caller's whole contribution to an ended fund."""
        who = ensure_signed(origin)
        fund = self._require_fund(index)
        now = self.system.block_number
        if not fund.end < now:
            raise FundStillActive(f"fund {index} is still active")
        balance = self.contribution_get(index, who)
        if balance <= 0:
            raise NoContribution(f"{who!r} has not contributed to fund {index}")
        self.currency.withdraw(self.fund_account_id(index), balance)
        self._resolve_into_existing(who, balance)
        self.contribution_kill(index, who)
        self._funds[index] = replace(fund, raised=max(fund.raised - balance, 0))
        self.system.deposit_event(Withdrew(who, index, balance, now))

    def dissolve(self, origin: Origin, index: int) -> None:
        """Remove a retired fund; the caller collects the deposit and what remains."""
        reporter = ensure_signed(origin)
        fund = self._require_fund(index)
        now = self.system.block_number
        if now < fund.end + self.retirement_period:
            raise FundNotRetired(f"fund {index} has not retired yet")
        amount = fund.deposit + fund.raised
        self.currency.withdraw(self.fund_account_id(index), amount)
        self.currency.deposit_creating(reporter, amount)
        del self._funds[index]
        self.crowdfund_kill(index)
        self.system.deposit_event(Dissolved(index, now, reporter))

    def dispense(self, origin: Origin, index: int) -> None:
        """Pay a successful fund to its beneficiary; the caller gets the deposit."""
        caller = ensure_signed(origin)
        fund = self._require_fund(index)
        now = self.system.block_number
        if now < fund.end:
            raise FundStillActive(f"fund {index} is still active")
        if fund.raised < fund.goal:
            raise UnsuccessfulFund(f"fund {index} did not reach its goal")
        account = self.fund_account_id(index)
        self.currency.withdraw(account, fund.raised)
        self.currency.deposit_creating(fund.beneficiary, fund.raised)
        self.currency.withdraw(account, fund.deposit)
        self.currency.deposit_creating(caller, fund.deposit)
        del self._funds[index]
        self.crowdfund_kill(index)
        self.system.deposit_event(Dispensed(index, now, caller))

    def funds(self, index: int) -> FundInfo | None:
        """The fund stored at ``index``, or ``None``."""
        return self._funds.get(index)

    def fund_account_id(self, index: int) -> bytes:
        """The account that holds the fund's pot."""
        raw = _ACCOUNT_PREFIX + PALLET_ID + index.to_bytes(4, "little")
        return raw.ljust(_ACCOUNT_LEN, b"\0")

    def id_from_index(self, index: int) -> bytes:
        """The identifier of the contribution table belonging to a fund."""
        data = _CHILD_PREFIX + index.to_bytes(4, "little")
        return hashlib.blake2b(data, digest_size=32).digest()

    def contribution_put(self, index: int, who: Hashable, balance: int) -> None:
        self._contributions.setdefault(self.id_from_index(index), {})[who] = balance

    def contribution_get(self, index: int, who: Hashable) -> int:
        return self._contributions.get(self.id_from_index(index), {}).get(who, 0)

    def contribution_kill(self, index: int, who: Hashable) -> None:
        table = self._contributions.get(self.id_from_index(index))
        if table is not None:
            table.pop(who, None)

    def crowdfund_kill(self, index: int) -> None:
        """Drop every contribution recorded for the fund at once."""
        self._contributions.pop(self.id_from_index(index), None)