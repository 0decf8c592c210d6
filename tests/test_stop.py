import pytest

from transitrt.stop import Stop


def test_round_trip_all_flag_combinations():
    for in_allowed in (False, True):
        for out_allowed in (False, True):
            s = Stop(12345, in_allowed, out_allowed)
            assert Stop.from_value(s.value()) == s


def test_value_without_flags_is_location_index():
    assert Stop(77, False, False).value() == 77


def test_flags_change_value_but_not_location():
    plain = Stop(5, False, False)
    boarding = Stop(5, True, False)
    alighting = Stop(5, False, True)
    assert len({plain.value(), boarding.value(), alighting.value()}) == 3
    assert Stop.from_value(boarding.value()).location_idx == 5
    assert Stop.from_value(alighting.value()).out_allowed is True
    assert Stop.from_value(alighting.value()).in_allowed is False


def test_ordering_by_location_then_flags():
    assert Stop(1, True, True) < Stop(2, False, False)
    assert Stop(3, False, True) < Stop(3, True, False)
    assert sorted([Stop(4, True, True), Stop(1, True, True)])[0].location_idx == 1


def test_largest_location_round_trips():
    s = Stop(2**30 - 1, True, True)
    assert Stop.from_value(s.value()) == s


def test_location_too_large_raises():
    with pytest.raises(ValueError):
        Stop(2**30, True, True)


def test_negative_location_raises():
    with pytest.raises(ValueError):
        Stop(-1, True, True)


@pytest.mark.parametrize("value", [-1, 2**32])
def test_from_value_out_of_range_raises(value):
    with pytest.raises(ValueError):
        Stop.from_value(value)


def test_flags_are_normalised_to_bool():
    s = Stop(3, 1, 0)
    assert s.in_allowed is True
    assert s.out_allowed is False