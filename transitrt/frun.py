"""Full runs: a run together with the timetables needed to describe it."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Iterator
from zoneinfo import ZoneInfo

from .rt_timetable import RtTimetable
from .run import Run
from .stop import Stop
from .timetable import (
    INVALID_IDX,
    MAX_DAYS,
    DayTransport,
    Debug,
    EventType,
    Interval,
    Location,
    LocationType,
    Timetable,
)

_TIME_FORMAT = "%d.%m %H:%M"
_TRACK_TYPES = (LocationType.TRACK, LocationType.GENERATED_TRACK)


def _section(sections: list[Any], idx: int) -> Any:
    """Pick the value of a compacted per-section list."""
    return sections[0] if len(sections) == 1 else sections[idx]


@dataclass(frozen=True, eq=False)
class RunStop:
    """One stop of a full run."""

    fr: FullRun
    stop_idx: int

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RunStop):
            return NotImplemented
        return self.fr is other.fr and self.stop_idx == other.stop_idx

    def __hash__(self) -> int:
        return hash((id(self.fr), self.stop_idx))

    @property
    def tt(self) -> Timetable:
        return self.fr.tt

    @property
    def rtt(self) -> RtTimetable | None:
        return self.fr.rtt

    def _use_rt(self) -> bool:
        return self.fr.is_rt() and self.rtt is not None

    def get_stop(self) -> Stop:
        if self._use_rt():
            value = self.rtt.rt_transport_location_seq[self.fr.rt][self.stop_idx]
        else:
            route = self.tt.transport_route[self.fr.t.t_idx]
            value = self.tt.route_location_seq[route][self.stop_idx]
        return Stop.from_value(value)

    def get_location(self) -> Location:
        return self.tt.locations.get(self.get_location_idx())

    def pos(self) -> tuple[float, float]:
        return self.tt.locations.coordinates[self.get_location_idx()]

    def get_location_idx(self) -> int:
        return self.get_stop().location_idx

    def _parent_or_self(self, l: int) -> int:
        parent = self.tt.locations.parents[l]
        return l if parent is None else parent

    def name(self) -> str:
        """Station name; tracks report the name of their parent station."""
        l = self.get_location_idx()
        if self.tt.locations.types[l] in _TRACK_TYPES:
            l = self._parent_or_self(l)
        return self.tt.locations.names[l]

    def track(self) -> str:
        l = self.get_location_idx()
        if self.tt.locations.types[l] in _TRACK_TYPES:
            return self.tt.locations.names[l]
        return ""

    def id(self) -> str:
        l = self.get_location_idx()
        if self.tt.locations.types[l] is LocationType.GENERATED_TRACK:
            l = self._parent_or_self(l)
        return self.tt.locations.ids[l]

    def get_provider(self, ev_type: EventType = EventType.DEP) -> Any:
        sections = self.tt.transport_section_providers[self.fr.t.t_idx]
        return self.tt.providers[_section(sections, self.section_idx(ev_type))]

    def get_trip_idx(self, ev_type: EventType = EventType.DEP) -> int:
        sections = self.tt.transport_to_trip_section[self.fr.t.t_idx]
        return self.tt.merged_trips[_section(sections, self.section_idx(ev_type))][0]

    def scheduled_time(self, ev_type: EventType) -> datetime:
        if self.fr.is_scheduled():
            return self.tt.event_time(self.fr.t, self.stop_idx, ev_type)
        return self.rtt.unix_event_time(self.fr.rt, self.stop_idx, ev_type)

    def time(self, ev_type: EventType) -> datetime:
        """Real-time event time if available, otherwise the scheduled one."""
        if self._use_rt():
            return self.rtt.unix_event_time(self.fr.rt, self.stop_idx, ev_type)
        return self.tt.event_time(self.fr.t, self.stop_idx, ev_type)

    def line(self, ev_type: EventType = EventType.DEP) -> str:
        if self._use_rt():
            rt_line = self.rtt.rt_transport_line[self.fr.rt]
            return rt_line or self.scheduled_line(ev_type)
        return self.scheduled_line(ev_type)

    def scheduled_line(self, ev_type: EventType = EventType.DEP) -> str:
        if not self.fr.is_scheduled():
            return ""
        sections = self.tt.transport_section_lines[self.fr.t.t_idx]
        if not sections:
            return ""
        return self.tt.trip_lines[_section(sections, self.section_idx(ev_type))]

    def direction(self, ev_type: EventType = EventType.DEP) -> str:
        if not self.fr.is_scheduled():
            return ""
        sections = self.tt.transport_section_directions[self.fr.t.t_idx]
        if not sections:
            return ""
        direction_idx = _section(sections, self.section_idx(ev_type))
        if direction_idx == INVALID_IDX:
            return ""
        return self.tt.trip_direction(direction_idx)

    def get_clasz(self, ev_type: EventType = EventType.DEP) -> int:
        if self._use_rt():
            sections = self.rtt.rt_transport_section_clasz[self.fr.rt]
        else:
            route = self.tt.transport_route[self.fr.t.t_idx]
            sections = self.tt.route_section_clasz[route]
        return _section(sections, self.section_idx(ev_type))

    def get_scheduled_clasz(self, ev_type: EventType = EventType.DEP) -> int:
        if not self.fr.is_scheduled():
            return 0
        route = self.tt.transport_route[self.fr.t.t_idx]
        return _section(self.tt.route_section_clasz[route], self.section_idx(ev_type))

    def get_route_color(self, ev_type: EventType = EventType.DEP) -> Any:
        sections = self.tt.transport_section_route_colors[self.fr.t.t_idx]
        return _section(sections, self.section_idx(ev_type))

    def in_allowed(self) -> bool:
        return self.get_stop().in_allowed

    def out_allowed(self) -> bool:
        return self.get_stop().out_allowed

    def is_canceled(self) -> bool:
        stp = self.get_stop()
        return not stp.in_allowed and not stp.out_allowed

    def section_idx(self, ev_type: EventType) -> int:
        return self.stop_idx if ev_type is EventType.DEP else self.stop_idx - 1

    def _timezone(self) -> tzinfo:
        tz_idx = self.tt.locations.location_timezones[self.get_location_idx()]
        if tz_idx is None:
            return timezone.utc
        tz = self.tt.locations.timezones[tz_idx]
        if isinstance(tz, str):
            return ZoneInfo(tz)
        if isinstance(tz, tzinfo):
            return tz
        return timezone.utc

    def _format_event(self, ev_type: EventType, tz: tzinfo) -> str:
        allowed = self.out_allowed() if ev_type is EventType.ARR else self.in_allowed()
        letter = "a" if ev_type is EventType.ARR else "d"
        scheduled = self.scheduled_time(ev_type)
        text = (
            f"{' ' if allowed else '-'}{letter}: {scheduled.strftime(_TIME_FORMAT)}"
            f" [{scheduled.astimezone(tz).strftime(_TIME_FORMAT)}]"
        )
        if self._use_rt():
            rt = self.time(ev_type)
            text += (
                f"  RT {rt.strftime(_TIME_FORMAT)}"
                f" [{rt.astimezone(tz).strftime(_TIME_FORMAT)}]"
            )
        return text

    def format(self, first: bool = False, last: bool = False) -> str:
        """One line describing this stop: times (UTC and local) and trip info."""
        tz = self._timezone()
        parts = [f"  {self.stop_idx:2}: {self.get_location().id:7} {self.name():.<48}"]

        stop_range = self.fr.stop_range
        has_arrival = not first and self.stop_idx != stop_range.start
        has_departure = not last and self.stop_idx != stop_range.end - 1

        if has_arrival:
            parts.append(self._format_event(EventType.ARR, tz))
        elif self._use_rt():
            parts.append(" " * 28 + " " * 31)
        else:
            parts.append(" " * 29)

        if has_departure:
            parts.append(" ")
            parts.append(self._format_event(EventType.DEP, tz))

        if self.fr.is_scheduled() and has_departure:
            parts.append(self._format_trips())
        return "".join(parts)

    def _format_trips(self) -> str:
        tt = self.tt
        sections = tt.transport_to_trip_section[self.fr.t.t_idx]
        merged = tt.merged_trips[_section(sections, self.stop_idx)]
        day = tt.internal_interval_days().start + timedelta(days=self.fr.t.day)
        out = ["  ["]
        for trip_idx in merged:
            entries = zip(tt.trip_debug[trip_idx], tt.trip_ids[trip_idx])
            for j, (_, trip_id_idx) in enumerate(entries):
                if j != 0:
                    out.append(", ")
                out.append(
                    f"{{name={tt.trip_display_names[trip_idx]}, "
                    f"day={day.isoformat()}, "
                    f"id={tt.trip_id_strings[trip_id_idx]}, "
                    f"src={tt.trip_id_src[trip_id_idx]}}}"
                )
        out.append("]")
        return "".join(out)

    def __str__(self) -> str:
        return self.format()


class FullRun(Run):
    """A run together with the static and (optional) real-time timetable.

    Iterating yields the stops of the stop range, skipping cancelled ones.
    """

    def __init__(self, tt: Timetable, rtt: RtTimetable | None, run: Run) -> None:
        super().__init__(t=run.t, stop_range=run.stop_range, rt=run.rt)
        self.tt = tt
        self.rtt = rtt
        if not self.is_rt() and rtt is not None:
            self.rt = rtt.resolve_rt(run.t)
        if not self.is_scheduled() and rtt is not None and run.rt != INVALID_IDX:
            self.t = rtt.resolve_static(run.rt)

    def _use_rt(self) -> bool:
        return self.is_rt() and self.rtt is not None

    def name(self) -> str:
        if self._use_rt():
            return self.rtt.transport_name(self.tt, self.rt)
        return self.tt.transport_name(self.t.t_idx)

    def dbg(self) -> Debug:
        if self._use_rt():
            return self.rtt.dbg(self.tt, self.rt)
        return self.tt.dbg(self.t.t_idx)

    def _is_valid_stop(self, i: int) -> bool:
        stp = self[i - self.stop_range.start]
        return stp.in_allowed() or stp.out_allowed()

    def first_valid(self, start: int = 0) -> int:
        """First stop index from ``start`` that is not cancelled."""
        for i in range(start, self.stop_range.end):
            if self._is_valid_stop(i):
                return i
        raise LookupError(f"no first valid found: {self.name()} (dbg={self.dbg()})")

    def last_valid(self) -> int:
        """Last stop index of the stop range that is not cancelled."""
        for r in range(self.stop_range.size()):
            i = self.stop_range.end - r - 1
            if self._is_valid_stop(i):
                return i
        raise LookupError(f"no last valid found: {self.name()} (dbg={self.dbg()})")

    def size(self) -> int:
        """Number of stops of the whole trip (not only the stop range)."""
        if self._use_rt():
            return len(self.rtt.rt_transport_location_seq[self.rt])
        route = self.tt.transport_route[self.t.t_idx]
        return len(self.tt.route_location_seq[route])

    def __getitem__(self, i: int) -> RunStop:
        return RunStop(self, self.stop_range.start + i)

    def __iter__(self) -> Iterator[RunStop]:
        end = self.stop_range.end
        idx = self.first_valid(self.stop_range.start)
        while idx != end:
            yield RunStop(self, idx)
            idx += 1
            while idx != end and RunStop(self, idx).is_canceled():
                idx += 1

    def _first_trip_idx(self) -> int:
        return self.tt.merged_trips[self.tt.transport_to_trip_section[self.t.t_idx][0]][0]

    def id(self) -> tuple[str, int]:
        """External trip id and source of this run."""
        if self.is_scheduled():
            trip_id_idx = self.tt.trip_ids[self._first_trip_idx()][0]
            return (
                self.tt.trip_id_strings[trip_id_idx],
                self.tt.trip_id_src[trip_id_idx],
            )
        if self.rtt is not None and self.rt != INVALID_IDX:
            static = self.rtt.rt_transport_static_transport[self.rt]
            if not isinstance(static, DayTransport):
                return self.rtt.trip_id_strings[static], self.rtt.rt_transport_src[self.rt]
        return "", 0

    def trip_idx(self) -> int:
        if self.is_scheduled():
            return self._first_trip_idx()
        raise ValueError("trip idx only for scheduled trip")

    def get_clasz(self) -> int:
        if self.is_scheduled():
            route = self.tt.transport_route[self.t.t_idx]
            return self.tt.route_section_clasz[route][0]
        return self.rtt.rt_transport_section_clasz[self.rt][0]

    def format(self) -> str:
        """All non-cancelled stops, one line each."""
        return "".join(f"{stp.format()}\n" for stp in self)

    def __str__(self) -> str:
        return self.format()

    @classmethod
    def from_rt(cls, tt: Timetable, rtt: RtTimetable, rt_t: int) -> FullRun:
        n = len(rtt.rt_transport_location_seq[rt_t])
        return cls(tt, rtt, Run(stop_range=Interval(0, n), rt=rt_t))

    @classmethod
    def from_t(cls, tt: Timetable, rtt: RtTimetable | None, transport: DayTransport) -> FullRun:
        route = tt.transport_route[transport.t_idx]
        n = len(tt.route_location_seq[route])
        return cls(tt, rtt, Run(t=transport, stop_range=Interval(0, n)))


def format_timetable(tt: Timetable) -> str:
    """Human readable dump of all trips and transports of a timetable."""
    out: list[str] = []
    internal = tt.internal_interval_days()
    n_internal_days = (internal.end - internal.start).days

    def active_days(bitfield: int) -> str:
        days = [
            (internal.start + timedelta(days=d)).isoformat()
            for d in range(min(n_internal_days, MAX_DAYS))
            if bitfield >> d & 1
        ]
        return "[" + ", ".join(days) + "]"

    for trip_id_idx, trip_idx in tt.trip_id_to_idx:
        out.append(f"{tt.trip_id_strings[trip_id_idx]}:\n")
        for t, stop_range in tt.trip_transport_ranges[trip_idx]:
            bitfield = tt.bitfields[tt.transport_traffic_days[t]]
            out.append(
                f"  {t}: [{stop_range.start}, {stop_range.end}[ "
                f"active={active_days(bitfield)}\n"
            )

    num_days = n_internal_days + 1
    for transport_idx, bitfield_idx in enumerate(tt.transport_traffic_days):
        traffic_days = tt.bitfields[bitfield_idx]
        num_stops = len(tt.route_location_seq[tt.transport_route[transport_idx]])
        bits = "".join("1" if traffic_days >> d & 1 else "0" for d in range(num_days))
        out.append(f"TRANSPORT={transport_idx}, TRAFFIC_DAYS={bits}\n")
        for day_idx in range(n_internal_days):
            if traffic_days >> day_idx & 1:
                d = internal.start + timedelta(days=day_idx)
                out.append(f"{d.isoformat()} (day_idx={day_idx})\n")
                fr = FullRun(
                    tt,
                    None,
                    Run(
                        t=DayTransport(transport_idx, day_idx),
                        stop_range=Interval(0, num_stops),
                    ),
                )
                out.append(fr.format())
                out.append("\n")
        out.append("---\n\n")
    return "".join(out)