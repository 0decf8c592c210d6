"""Real-time overlay on top of a static timetable."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Sequence

from .stop import Stop
from .timetable import (
    INVALID_IDX,
    DayTransport,
    Debug,
    EventType,
    Timetable,
)

DELTA_MIN = -(1 << 15)
DELTA_MAX = (1 << 15) - 1

ChangeCallback = Callable[[DayTransport, int, EventType, timedelta, bool], None]


def _midnight_utc(d: date) -> datetime:
    return datetime.combine(d, time(), tzinfo=timezone.utc)


def _event_index(stop_idx: int, ev_type: EventType) -> int:
    return stop_idx * 2 - (1 if ev_type is EventType.ARR else 0)


@dataclass
class TripInfo:
    """Stop sequence, event times and section classes of a trip."""

    stop_seq: list[int] = field(default_factory=list)
    event_times: list[datetime] = field(default_factory=list)
    section_clasz: list[int] = field(default_factory=list)


@dataclass
class TripUpdate:
    """A real-time change to one trip; an empty stop sequence cancels it."""

    id: tuple[str, int]
    day: date
    start_time: datetime | None = None
    is_rerouting: bool = False
    is_additional: bool = False
    info: TripInfo = field(default_factory=TripInfo)

    def is_cancel(self) -> bool:
        return not self.info.stop_seq


@dataclass
class RtTimetable:
    """Real-time state.

    Traffic-day bitfields start as a copy of the static ones and lose the
    bit of every transport that receives a real-time copy or is cancelled.
    Real-time event times are stored in minutes relative to ``base_day``.
    Entries of ``rt_transport_static_transport`` are either the static
    ``DayTransport`` or, for additional trips, an index into
    ``trip_id_strings``.
    """

    transport_traffic_days: list[int] = field(default_factory=list)
    bitfields: list[int] = field(default_factory=list)
    location_rt_transports: defaultdict[int, list[int]] = field(
        default_factory=lambda: defaultdict(list)
    )
    base_day: date = date(1970, 1, 1)
    base_day_idx: int = 0
    static_trip_lookup: dict[DayTransport, int] = field(default_factory=dict)
    additional_trips_lookup: dict[int, int] = field(default_factory=dict)
    rt_transport_static_transport: list[DayTransport | int] = field(
        default_factory=list
    )
    trip_id_strings: list[str] = field(default_factory=list)
    rt_transport_src: list[int] = field(default_factory=list)
    rt_transport_train_nr: list[int] = field(default_factory=list)
    rt_transport_stop_times: list[list[int]] = field(default_factory=list)
    rt_transport_location_seq: list[list[int]] = field(default_factory=list)
    rt_transport_display_names: list[str] = field(default_factory=list)
    rt_transport_line: list[str] = field(default_factory=list)
    rt_transport_section_clasz: list[list[int]] = field(default_factory=list)
    rt_transport_is_cancelled: list[bool] = field(default_factory=list)
    change_callback: ChangeCallback | None = field(
        default=None, repr=False, compare=False
    )

    def add_rt_transport(
        self,
        src: int,
        tt: Timetable,
        transport: DayTransport,
        stop_seq: Sequence[int] = (),
        time_seq: Sequence[int] = (),
    ) -> int:
        """Create a real-time copy of a static transport and return its index."""
        rt_t = len(self.rt_transport_src)
        self.static_trip_lookup.setdefault(transport, rt_t)
        self.rt_transport_static_transport.append(transport)

        static_bf = self.bitfields[self.transport_traffic_days[transport.t_idx]]
        self.bitfields.append(static_bf & ~(1 << transport.day))
        self.transport_traffic_days[transport.t_idx] = len(self.bitfields) - 1

        route = tt.transport_route[transport.t_idx]
        location_seq = list(stop_seq) if stop_seq else list(tt.route_location_seq[route])
        self.rt_transport_location_seq.append(location_seq)
        self.rt_transport_src.append(src)
        self.rt_transport_train_nr.append(0)

        for s in location_seq:
            transports = self.location_rt_transports[Stop.from_value(s).location_idx]
            if not transports or transports[-1] != rt_t:
                transports.append(rt_t)

        if time_seq:
            times = list(time_seq)
        else:
            times = []
            for stop_idx in range(len(location_seq) - 1):
                times.append(
                    self.unix_to_delta(tt.event_time(transport, stop_idx, EventType.DEP))
                )
                times.append(
                    self.unix_to_delta(
                        tt.event_time(transport, stop_idx + 1, EventType.ARR)
                    )
                )
        self.rt_transport_stop_times.append(times)

        self.rt_transport_display_names.append("")
        self.rt_transport_section_clasz.append(list(tt.route_section_clasz[route]))
        self.rt_transport_line.append("")
        self.rt_transport_is_cancelled.append(False)
        return rt_t

    def unix_to_delta(self, t: datetime) -> int:
        """Minutes since the base day, clamped to the storable range."""
        minutes = (t - _midnight_utc(self.base_day)) // timedelta(minutes=1)
        return max(DELTA_MIN, min(DELTA_MAX, minutes))

    def update_time(
        self, rt_t: int, stop_idx: int, ev_type: EventType, new_time: datetime
    ) -> None:
        times = self.rt_transport_stop_times[rt_t]
        ev_idx = _event_index(stop_idx, ev_type)
        if not 0 <= ev_idx < len(times):
            raise IndexError(
                f"no {ev_type.value} event at stop {stop_idx} of rt transport {rt_t}"
            )
        times[ev_idx] = self.unix_to_delta(new_time)

    def set_change_callback(self, callback: ChangeCallback) -> None:
        self.change_callback = callback

    def reset_change_callback(self) -> None:
        self.change_callback = None

    def dispatch_event_change(
        self,
        transport: DayTransport,
        stop_idx: int,
        ev_type: EventType,
        delay: timedelta,
        cancelled: bool,
    ) -> None:
        if self.change_callback is not None:
            self.change_callback(transport, stop_idx, ev_type, delay, cancelled)

    def unix_event_time(self, rt_t: int, stop_idx: int, ev_type: EventType) -> datetime:
        return _midnight_utc(self.base_day) + timedelta(
            minutes=self.event_time(rt_t, stop_idx, ev_type)
        )

    def event_time(self, rt_t: int, stop_idx: int, ev_type: EventType) -> int:
        """Event time in minutes relative to the base day."""
        times = self.rt_transport_stop_times[rt_t]
        ev_idx = _event_index(stop_idx, ev_type)
        if not 0 <= ev_idx < len(times):
            raise IndexError(
                f"no {ev_type.value} event at stop {stop_idx} of rt transport {rt_t}"
            )
        return times[ev_idx]

    def transport_name(self, tt: Timetable, rt_t: int) -> str:
        name = self.rt_transport_display_names[rt_t]
        if name:
            return name
        static = self.rt_transport_static_transport[rt_t]
        if isinstance(static, DayTransport):
            return tt.transport_name(static.t_idx)
        return "?"

    def dbg(self, tt: Timetable, rt_t: int) -> Debug:
        static = self.rt_transport_static_transport[rt_t]
        if isinstance(static, DayTransport):
            return tt.dbg(static.t_idx)
        return Debug("RT")

    def resolve_static(self, rt_t: int) -> DayTransport:
        static = self.rt_transport_static_transport[rt_t]
        return static if isinstance(static, DayTransport) else DayTransport.invalid()

    def resolve_rt(self, transport: DayTransport) -> int:
        return self.static_trip_lookup.get(transport, INVALID_IDX)

    def n_rt_transports(self) -> int:
        return len(self.rt_transport_src)


def create_rt_timetable(tt: Timetable, base_day: date) -> RtTimetable:
    """Start an empty real-time timetable on top of ``tt``."""
    rtt = RtTimetable(
        transport_traffic_days=list(tt.transport_traffic_days),
        bitfields=list(tt.bitfields),
        base_day=base_day,
        base_day_idx=tt.day_idx(base_day),
    )
    if tt.n_locations():
        _ = rtt.location_rt_transports[tt.n_locations() - 1]
    return rtt