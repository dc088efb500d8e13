import pytest

from palletry.lockable_currency import (
    EXAMPLE_ID,
    ExtendedLock,
    LockableCurrency,
    Locked,
    Unlocked,
)
from palletry.runtime import BadOrigin, Balances, LiquidityRestrictions, Origin, System


@pytest.fixture
def system():
    return System(block_number=1)


@pytest.fixture
def balances(system):
    return Balances(system, 1, {1: 10000, 2: 11000})


@pytest.fixture
def pallet(system, balances):
    return LockableCurrency(system, balances)


def test_lock_identifier(pallet, balances):
    pallet.lock_capital(Origin.signed(2), 100)
    assert list(balances.locks(2)) == [b"example "]


def test_lock_capital(pallet, balances, system):
    pallet.lock_capital(Origin.signed(1), 5000)
    assert balances.locks(1) == {EXAMPLE_ID: 5000}
    assert system.events()[-1].event == Locked(1, 5000)


def test_locked_funds_cannot_move(pallet, balances):
    pallet.lock_capital(Origin.signed(1), 10000)
    with pytest.raises(LiquidityRestrictions):
        balances.transfer(1, 2, 1)
    assert balances.free_balance(1) == 10000


def test_lock_capital_replaces_previous_lock(pallet, balances):
    pallet.lock_capital(Origin.signed(1), 5000)
    pallet.lock_capital(Origin.signed(1), 2000)
    assert balances.locks(1) == {EXAMPLE_ID: 2000}


def test_extend_lock_only_grows(pallet, balances, system):
    pallet.lock_capital(Origin.signed(1), 5000)
    pallet.extend_lock(Origin.signed(1), 2000)
    assert balances.locks(1) == {EXAMPLE_ID: 5000}
    pallet.extend_lock(Origin.signed(1), 7000)
    assert balances.locks(1) == {EXAMPLE_ID: 7000}
    assert system.events()[-1].event == ExtendedLock(1, 7000)


def test_unlock_all(pallet, balances, system):
    pallet.lock_capital(Origin.signed(1), 10000)
    pallet.unlock_all(Origin.signed(1))
    assert balances.locks(1) == {}
    assert system.events()[-1].event == Unlocked(1)
    balances.transfer(1, 2, 10000)
    assert balances.free_balance(2) == 21000


def test_calls_require_signed_origin(pallet, balances, system):
    with pytest.raises(BadOrigin):
        pallet.lock_capital(Origin.root(), 5000)
    with pytest.raises(BadOrigin):
        pallet.unlock_all(Origin.none())
    assert balances.locks(1) == {}
    assert system.events() == []