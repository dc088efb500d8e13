import pytest

from palletry.last_caller import Called, LastCaller
from palletry.runtime import BadOrigin, Origin, System


@pytest.fixture
def system():
    return System(block_number=1)


def test_call_records_caller(system):
    pallet = LastCaller(system)
    pallet.call(Origin.signed(5))
    assert pallet.caller == 5
    assert system.events()[0].event == Called(5)


def test_later_caller_replaces_earlier(system):
    pallet = LastCaller(system)
    pallet.call(Origin.signed(5))
    pallet.call(Origin.signed(6))
    assert pallet.caller == 6
    assert [r.event for r in system.events()] == [Called(5), Called(6)]


def test_unsigned_call_is_rejected(system):
    pallet = LastCaller(system)
    pallet.call(Origin.signed(5))
    with pytest.raises(BadOrigin):
        pallet.call(Origin.none())
    assert pallet.caller == 5
    assert len(system.events()) == 1