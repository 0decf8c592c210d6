"""Start candidates for a search and the destination markers."""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Any, Callable, Sequence

from ..special_stations import SpecialStation, get_special_station
from ..stop import Stop
from ..timetable import EventType, Interval
from .query import Direction, LocationMatchMode, Offset, Start, StartTime, for_each_meta

DIST_TO_DEST_MAX = (1 << 16) - 1

_MINUTE = timedelta(minutes=1)
_MINUTES_PER_DAY = 1440

Less = Callable[[Start, Start], bool]


def _insert_sorted(starts: list[Start], el: Start, less: Less) -> bool:
    key = cmp_to_key(lambda a, b: -1 if less(a, b) else (1 if less(b, a) else 0))
    i = bisect_left(starts, key(el), key=key)
    if i == len(starts) or starts[i] != el:
        starts.insert(i, el)
        return True
    return False


def _is_active(bitfield: int, day: int) -> bool:
    return day >= 0 and bool(bitfield >> day & 1)


def _skip_stop(search_dir: Direction, i: int, n: int, stp: Stop) -> bool:
    if search_dir is Direction.BACKWARD:
        return i == 0 or not stp.out_allowed
    return i == n - 1 or not stp.in_allowed


def _add_start_times_at_stop(
    search_dir: Direction,
    tt: Any,
    rtt: Any,
    route: int,
    stop_idx: int,
    location: int,
    interval: Interval,
    offset: timedelta,
    starts: list[Start],
    less: Less,
) -> None:
    fwd = search_dir is Direction.FORWARD
    first_day = tt.day_idx_mam(interval.start)[0]
    last_day = tt.day_idx_mam(interval.end)[0]
    ev_type = EventType.DEP if fwd else EventType.ARR

    transports = tt.route_transport_ranges[route]
    for t in range(transports.start, transports.end):
        if rtt is None:
            traffic_days = tt.bitfields[tt.transport_traffic_days[t]]
        else:
            traffic_days = rtt.bitfields[rtt.transport_traffic_days[t]]
        minutes = tt.event_mam(t, stop_idx, ev_type) // _MINUTE
        day_offset, mam = divmod(minutes, _MINUTES_PER_DAY)
        stop_time_mam = timedelta(minutes=mam)
        for day in range(first_day, last_day + 1):
            ev_time = tt.to_unixtime(day, stop_time_mam)
            if _is_active(traffic_days, day - day_offset) and interval.contains(ev_time):
                _insert_sorted(
                    starts,
                    Start(
                        ev_time - offset if fwd else ev_time + offset,
                        ev_time,
                        location,
                    ),
                    less,
                )


def _add_starts_in_interval(
    search_dir: Direction,
    tt: Any,
    rtt: Any,
    interval: Interval,
    l: int,
    d: timedelta,
    starts: list[Start],
    add_ontrip: bool,
    less: Less,
) -> None:
    fwd = search_dir is Direction.FORWARD

    for r in tt.location_routes[l]:
        location_seq = tt.route_location_seq[r]
        for i, s in enumerate(location_seq):
            stp = Stop.from_value(s)
            if stp.location_idx != l or _skip_stop(search_dir, i, len(location_seq), stp):
                continue
            _add_start_times_at_stop(
                search_dir,
                tt,
                rtt,
                r,
                i,
                stp.location_idx,
                interval.shift(d) if fwd else interval.shift(-d),
                d,
                starts,
                less,
            )

    if rtt is not None:
        ev_type = EventType.DEP if fwd else EventType.ARR
        for rt_t in rtt.location_rt_transports.get(l, ()):
            location_seq = rtt.rt_transport_location_seq[rt_t]
            for i, s in enumerate(location_seq):
                stp = Stop.from_value(s)
                if stp.location_idx != l or _skip_stop(
                    search_dir, i, len(location_seq), stp
                ):
                    continue
                ev_time = rtt.unix_event_time(rt_t, i, ev_type)
                _insert_sorted(
                    starts,
                    Start(ev_time - d if fwd else ev_time + d, ev_time, l),
                    less,
                )

    # One earliest-arrival start right outside the interval; it only serves to
    # dominate journeys from within the interval and is filtered out later.
    if add_ontrip:
        if fwd:
            ontrip = Start(interval.end, interval.end + d, l)
        else:
            before = interval.start - _MINUTE
            ontrip = Start(before, before - d, l)
        _insert_sorted(starts, ontrip, less)


def get_starts(
    search_dir: Direction,
    tt: Any,
    rtt: Any,
    start_time: StartTime,
    station_offsets: Sequence[Offset],
    mode: LocationMatchMode,
    use_start_footpaths: bool,
    add_ontrip: bool,
    prf_idx: int,
) -> list[Start]:
    """All start candidates, latest first for forward and earliest first otherwise."""
    fwd = search_dir is Direction.FORWARD
    shortest: dict[int, timedelta] = {}

    def update(l: int, d: timedelta) -> None:
        shortest[l] = min(shortest.get(l, d), d)

    footpaths = (tt.locations.footpaths_out if fwd else tt.locations.footpaths_in)
    for o in station_offsets:
        for l in for_each_meta(tt, mode, o.target):
            update(l, o.duration)
            if use_start_footpaths:
                for fp in footpaths[prf_idx][l]:
                    update(fp.target, o.duration + fp.duration)

    def less(a: Start, b: Start) -> bool:
        return b < a if fwd else a < b

    starts: list[Start] = []
    for l, o in shortest.items():
        if isinstance(start_time, datetime):
            _insert_sorted(
                starts,
                Start(start_time, start_time + o if fwd else start_time - o, l),
                less,
            )
        else:
            _add_starts_in_interval(
                search_dir, tt, rtt, start_time, l, o, starts, add_ontrip, less
            )
    return starts


def collect_destinations(
    tt: Any, destinations: Sequence[Offset], match_mode: LocationMatchMode
) -> tuple[list[bool], list[int]]:
    """Destination flags per location and, for intermodal search, minutes to it."""
    n = tt.n_locations()
    is_destination = [False] * n
    intermodal = match_mode is LocationMatchMode.INTERMODAL
    if intermodal:
        is_destination[get_special_station(SpecialStation.END)] = True
        dist_to_dest = [DIST_TO_DEST_MAX] * n
    else:
        dist_to_dest = []

    for d in destinations:
        for l in for_each_meta(tt, match_mode, d.target):
            if intermodal:
                dist_to_dest[l] = d.duration // _MINUTE
            else:
                is_destination[l] = True
    return is_destination, dist_to_dest