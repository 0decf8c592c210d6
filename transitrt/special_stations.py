"""Reserved locations placed at the beginning of every timetable."""

from __future__ import annotations

from enum import IntEnum


class SpecialStation(IntEnum):
    """Special stations; the value is their location index."""

    START = 0
    END = 1
    VIA0 = 2
    VIA1 = 3
    VIA2 = 4
    VIA3 = 5
    VIA4 = 6
    VIA5 = 7
    VIA6 = 8


N_SPECIAL_STATIONS = len(SpecialStation)

SPECIAL_STATION_NAMES = (
    "START",
    "END",
    "VIA0",
    "VIA1",
    "VIA2",
    "VIA3",
    "VIA4",
    "VIA5",
    "VIA6",
)


def is_special(location_idx: int) -> bool:
    """Tell whether a location index belongs to a special station."""
    return location_idx < N_SPECIAL_STATIONS


def get_special_station(station: SpecialStation) -> int:
    """Return the location index of a special station."""
    return int(SpecialStation(station))


def get_special_station_name(station: SpecialStation) -> str:
    """Return the display name of a special station."""
    return SPECIAL_STATION_NAMES[int(SpecialStation(station))]