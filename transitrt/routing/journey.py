"""Journeys as found by a search: a sequence of legs with times."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Union

from ..frun import FullRun
from ..run import Run
from ..timetable import Footpath, Interval
from .query import Offset

_MINUTE = timedelta(minutes=1)


def _fmt_time(t: datetime) -> str:
    return t.strftime("%Y-%m-%d %H:%M")


def _fmt_location(tt: Any, l: int) -> str:
    return f"({tt.locations.names[l]}, {tt.locations.ids[l]})"


def _indent(n_indent: int) -> str:
    return "  " * n_indent


@dataclass(init=False)
class RunEnterExit:
    """Ride on ``run`` between two stops; the range covers both, in any order."""

    run: Run
    stop_range: Interval

    def __init__(self, run: Run, a: int, b: int) -> None:
        self.run = run
        self.stop_range = Interval(min(a, b), max(a, b) + 1)


LegUse = Union[RunEnterExit, Footpath, Offset]


@dataclass
class Leg:
    """One part of a journey: a ride, a footpath or an intermodal offset."""

    from_: int
    to: int
    dep_time: datetime
    arr_time: datetime
    uses: LegUse

    def format(self, tt: Any, rtt: Any = None, n_indent: int = 0) -> str:
        """Text describing what this leg uses."""
        uses = self.uses
        if isinstance(uses, RunEnterExit):
            fr = FullRun(tt, rtt, uses.run)
            start, end = uses.stop_range.start, uses.stop_range.end
            return "".join(
                f"{fr[i].format(i == start, i == end - 1)}\n"
                for i in range(start, end)
                if not fr[i].is_canceled()
            )
        if isinstance(uses, Offset):
            return (
                f"{_indent(n_indent)}MUMO (id={uses.type}, "
                f"duration={uses.duration // _MINUTE})\n"
            )
        return f"{_indent(n_indent)}FOOTPATH (duration={uses.duration // _MINUTE})\n"


@dataclass
class Journey:
    """A connection from start to destination with its legs."""

    start_time: datetime
    dest_time: datetime
    dest: int = 0
    transfers: int = 0
    legs: list[Leg] = field(default_factory=list)

    def add(self, leg: Leg) -> None:
        self.legs.append(leg)

    def travel_time(self) -> timedelta:
        return abs(self.dest_time - self.start_time)

    def format(self, tt: Any, rtt: Any = None, debug: bool = False) -> str:
        """Multi-line description of the journey and all its legs."""
        if not self.legs:
            return (
                f"no legs [start_time={_fmt_time(self.start_time)}, "
                f"dest_time={_fmt_time(self.dest_time)}, "
                f"transfers={self.transfers}\n"
            )

        out: list[str] = []
        if debug:
            out.append(f" DURATION: {self.travel_time() // _MINUTE}min ")
        out.append(f"[{_fmt_time(self.start_time)}, {_fmt_time(self.dest_time)}]\n")
        out.append(f"TRANSFERS: {self.transfers}\n")
        first, last = self.legs[0], self.legs[-1]
        out.append(
            f"     FROM: {_fmt_location(tt, first.from_)} [{_fmt_time(first.dep_time)}]\n"
        )
        out.append(
            f"       TO: {_fmt_location(tt, last.to)} [{_fmt_time(last.arr_time)}]\n"
        )
        for i, leg in enumerate(self.legs):
            out.append(
                f"leg {i}: {_fmt_location(tt, leg.from_)} [{_fmt_time(leg.dep_time)}]"
                f" -> {_fmt_location(tt, leg.to)} [{_fmt_time(leg.arr_time)}]\n"
            )
            out.append(leg.format(tt, rtt, 1))
        return "".join(out)