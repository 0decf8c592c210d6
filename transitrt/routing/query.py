"""Routing queries: start/destination offsets, match modes and meta stations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterator, Union

from ..timetable import Interval
from .clasz_mask import all_clasz_allowed

StartTime = Union[datetime, Interval]


class Direction(Enum):
    """Search direction."""

    FORWARD = "forward"
    BACKWARD = "backward"


class LocationMatchMode(Enum):
    """How a query location is matched against timetable locations."""

    EXACT = "exact"
    ONLY_CHILDREN = "only_children"
    EQUIVALENT = "equivalent"
    INTERMODAL = "intermodal"


@dataclass(frozen=True)
class Offset:
    """A location reachable at the start or end of a journey after ``duration``."""

    target: int
    duration: timedelta
    type: int = 0


@dataclass(frozen=True, order=True)
class Start:
    """A start candidate: time at the journey start, time at the stop, stop."""

    time_at_start: datetime
    time_at_stop: datetime
    stop: int


@dataclass
class Query:
    """A routing query."""

    start_time: StartTime | None = None
    start_match_mode: LocationMatchMode = LocationMatchMode.EXACT
    dest_match_mode: LocationMatchMode = LocationMatchMode.EXACT
    use_start_footpaths: bool = True
    start: list[Offset] = field(default_factory=list)
    destination: list[Offset] = field(default_factory=list)
    min_connection_count: int = 0
    extend_interval_earlier: bool = False
    extend_interval_later: bool = False
    prf_idx: int = 0
    allowed_claszes: int = field(default_factory=all_clasz_allowed)


def for_each_meta(tt: Any, mode: LocationMatchMode, location: int) -> Iterator[int]:
    """Yield every location that ``location`` stands for under ``mode``."""
    yield location
    if mode in (LocationMatchMode.EXACT, LocationMatchMode.INTERMODAL):
        return
    children = tt.locations.children
    yield from children[location]
    if mode is LocationMatchMode.EQUIVALENT:
        for eq in tt.locations.equivalences[location]:
            yield eq
            yield from children[eq]


def matches(tt: Any, mode: LocationMatchMode, a: int, b: int) -> bool:
    """Tell whether location ``b`` is matched by query location ``a``."""
    return a == b or any(x == b for x in for_each_meta(tt, mode, a))