import pytest

from palletry.fixed_point import (
    FixedPoint,
    FixedUpdated,
    ManualUpdated,
    Overflow,
    Permill,
    PermillUpdated,
    U16F16,
)
from palletry.runtime import BadOrigin, Origin, System


@pytest.fixture
def system():
    return System(block_number=1)


@pytest.fixture
def pallet(system):
    return FixedPoint(system)


def _events(system):
    return [record.event for record in system.events()]


def test_all_accumulators_start_at_one(pallet):
    assert pallet.manual_value == 1 << 16
    assert pallet.permill_value == Permill.one()
    assert pallet.fixed_value == U16F16.from_num(1)
    assert float(pallet.fixed_value) == 1.0


def test_manual_impl_works(pallet, system):
    one = 1 << 16
    half = one // 2
    quarter = half // 2

    pallet.update_manual(Origin.signed(1), half)
    assert pallet.manual_value == half

    pallet.update_manual(Origin.signed(1), half)
    assert pallet.manual_value == quarter

    assert _events(system) == [
        ManualUpdated(half, half),
        ManualUpdated(half, quarter),
    ]


def test_manual_impl_overflows(pallet, system):
    one = 1 << 16
    pallet.update_manual(Origin.signed(1), one << 10)
    assert pallet.manual_value == one << 10

    with pytest.raises(Overflow):
        pallet.update_manual(Origin.signed(1), one << 7)
    assert pallet.manual_value == one << 10
    assert len(system.events()) == 1


def test_manual_rejects_out_of_range_factor(pallet):
    with pytest.raises(ValueError):
        pallet.update_manual(Origin.signed(1), 1 << 32)


def test_permill_impl_works(pallet, system):
    half = Permill.from_percent(50)
    quarter = Permill.from_percent(25)

    pallet.update_permill(Origin.signed(1), half)
    assert pallet.permill_value == half

    pallet.update_permill(Origin.signed(1), half)
    assert pallet.permill_value == quarter

    assert _events(system) == [
        PermillUpdated(half, half),
        PermillUpdated(half, quarter),
    ]


def test_fixed_impl_works(pallet, system):
    one = U16F16.from_num(1)
    half = one / 2
    quarter = half / 2

    pallet.update_fixed(Origin.signed(1), half)
    assert pallet.fixed_value == half

    pallet.update_fixed(Origin.signed(1), half)
    assert pallet.fixed_value == quarter

    assert _events(system) == [
        FixedUpdated(half, half),
        FixedUpdated(half, quarter),
    ]


def test_fixed_impl_overflows(pallet, system):
    pallet.update_fixed(Origin.signed(1), U16F16.from_num(1 << 10))
    with pytest.raises(Overflow):
        pallet.update_fixed(Origin.signed(1), U16F16.from_num(1 << 7))
    assert pallet.fixed_value == U16F16.from_num(1 << 10)
    assert len(system.events()) == 1


@pytest.mark.parametrize("call,arg", [
    ("update_manual", 1 << 15),
    ("update_permill", Permill.from_percent(50)),
    ("update_fixed", U16F16.from_num(0.5)),
])
def test_updates_require_signed_origin(pallet, call, arg):
    with pytest.raises(BadOrigin):
        getattr(pallet, call)(Origin.root(), arg)


def test_permill_from_percent_saturates():
    assert Permill.from_percent(150) == Permill.one()
    assert Permill.from_percent(50).parts == 500_000


def test_permill_rejects_out_of_range_parts():
    with pytest.raises(ValueError):
        Permill(1_000_001)


def test_u16f16_from_num_bits():
    assert U16F16.from_num(1).bits == 1 << 16
    assert U16F16.from_num(0.5).bits == 1 << 15
    assert U16F16.from_num(0.25) == U16F16.from_num(1) / 4


def test_u16f16_from_num_overflow():
    with pytest.raises(OverflowError):
        U16F16.from_num(1 << 16)


def test_u16f16_checked_mul_overflow_returns_none():
    assert U16F16.from_num(1 << 10).checked_mul(U16F16.from_num(1 << 7)) is None


def test_u16f16_divide_by_fixed():
    assert U16F16.from_num(3) / U16F16.from_num(2) == U16F16.from_num(1.5)


def test_u16f16_divide_by_zero():
    with pytest.raises(ZeroDivisionError):
        U16F16.from_num(1) / 0