import pytest

from transitrt.special_stations import (
    N_SPECIAL_STATIONS,
    SpecialStation,
    get_special_station,
    get_special_station_name,
    is_special,
)


def test_names_match_source():
    assert get_special_station_name(SpecialStation.START) == "START"
    assert get_special_station_name(SpecialStation.END) == "END"
    assert get_special_station_name(SpecialStation.VIA6) == "VIA6"


def test_all_stations_are_special():
    for station in SpecialStation:
        assert is_special(get_special_station(station))


def test_first_regular_location_is_not_special():
    assert not is_special(N_SPECIAL_STATIONS)
    assert is_special(N_SPECIAL_STATIONS - 1)


def test_station_indices_are_distinct_and_dense():
    indices = sorted(get_special_station(s) for s in SpecialStation)
    assert indices == list(range(N_SPECIAL_STATIONS))


def test_start_precedes_end():
    assert get_special_station(SpecialStation.START) < get_special_station(
        SpecialStation.END
    )


def test_name_by_integer_value():
    assert get_special_station_name(2) == "VIA0"


def test_unknown_station_raises():
    with pytest.raises(ValueError):
        get_special_station_name(N_SPECIAL_STATIONS)