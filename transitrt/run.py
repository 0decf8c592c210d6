"""A single trip instance, scheduled and/or real-time."""

from __future__ import annotations

from dataclasses import dataclass, field

from .timetable import INVALID_IDX, DayTransport, Interval


@dataclass
class Run:
    """One trip on one day.

    ``t`` refers to the static timetable and is invalid for additional
    real-time services. ``rt`` refers to the real-time timetable and is
    invalid when no real-time information exists. When both are invalid,
    the run could not be found.
    """

    t: DayTransport = field(default_factory=DayTransport.invalid)
    stop_range: Interval[int] = field(default_factory=lambda: Interval(0, 0))
    rt: int = INVALID_IDX

    def is_rt(self) -> bool:
        return self.rt != INVALID_IDX

    def is_scheduled(self) -> bool:
        return self.t.is_valid()

    def valid(self) -> bool:
        return self.t.is_valid() or self.rt != INVALID_IDX