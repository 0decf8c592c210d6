"""Rebuilding the legs of a journey from the RAPTOR round times."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from ..frun import FullRun
from ..rt_timetable import DELTA_MAX, DELTA_MIN
from ..run import Run
from ..special_stations import SpecialStation, get_special_station
from ..stop import Stop
from ..timetable import DayTransport, EventType, Footpath, Interval
from .journey import Journey, Leg, LegUse, RunEnterExit
from .query import Direction, LocationMatchMode, Query, for_each_meta, matches
from .raptor_state import RaptorState

_MINUTE = timedelta(minutes=1)
_MINUTES_PER_DAY = 1440


class ReconstructionError(RuntimeError):
    """The legs of a journey could not be reconstructed."""


def _midnight(base: date) -> datetime:
    return datetime.combine(base, time(), tzinfo=timezone.utc)


def _unix_to_delta(base: date, t: datetime) -> int:
    return (t - _midnight(base)) // _MINUTE


def _delta_to_unix(base: date, d: int) -> datetime:
    return _midnight(base) + timedelta(minutes=d)


def _fmt_location(tt: Any, l: int) -> str:
    return f"({tt.locations.names[l]}, {tt.locations.ids[l]})"


def _leg(
    search_dir: Direction,
    a: int,
    b: int,
    time_at_a: datetime,
    time_at_b: datetime,
    uses: LegUse,
) -> Leg:
    if search_dir is Direction.FORWARD:
        return Leg(a, b, time_at_a, time_at_b, uses)
    return Leg(b, a, time_at_b, time_at_a, uses)


def is_journey_start(tt: Any, query: Query, candidate: int) -> bool:
    """Tell whether ``candidate`` matches one of the query's start locations."""
    return any(
        matches(tt, query.start_match_mode, o.target, candidate) for o in query.start
    )


class _Reconstructor:
    def __init__(
        self,
        search_dir: Direction,
        tt: Any,
        rtt: Any,
        query: Query,
        state: RaptorState,
        journey: Journey,
        base: date,
        base_day_idx: int,
    ) -> None:
        self.dir = search_dir
        self.fwd = search_dir is Direction.FORWARD
        self.sign = 1 if self.fwd else -1
        self.tt = tt
        self.rtt = rtt
        self.q = query
        self.state = state
        self.j = journey
        self.base = base
        self.base_day_idx = base_day_idx
        self.is_ontrip = isinstance(query.start_time, datetime)
        self.invalid = DELTA_MAX if self.fwd else DELTA_MIN

    def better_or_eq(self, a: Any, b: Any) -> bool:
        return a <= b if self.fwd else a >= b

    def start_matches(self, a: int, b: int) -> bool:
        return self.better_or_eq(a, b) if self.is_ontrip else a == b

    def footpaths(self, l: int, towards_start: bool) -> list:
        locs = self.tt.locations
        use_in = self.fwd if towards_start else not self.fwd
        return (locs.footpaths_in if use_in else locs.footpaths_out)[self.q.prf_idx][l]

    def find_entry_in_prev_round(
        self, k: int, r: Run, from_stop_idx: int, t: int
    ) -> Leg | None:
        fr = FullRun(self.tt, self.rtt, r)
        n_stops = from_stop_idx + 1 if self.fwd else fr.size() - from_stop_idx
        ev_type = EventType.DEP if self.fwd else EventType.ARR
        prev_round = self.state.round_times[k - 1]
        for i in range(1, n_stops):
            stop_idx = from_stop_idx - i if self.fwd else from_stop_idx + i
            stp = fr[stop_idx]
            if (self.fwd and not stp.in_allowed()) or (
                not self.fwd and not stp.out_allowed()
            ):
                continue
            l = stp.get_location_idx()
            event_time = _unix_to_delta(self.base, stp.time(ev_type))
            if self.better_or_eq(prev_round[l], event_time) or (
                k == 1
                and self.q.start_match_mode is LocationMatchMode.EQUIVALENT
                and is_journey_start(self.tt, self.q, l)
                and self.start_matches(prev_round[l], event_time)
            ):
                run = Run(t=fr.t, stop_range=fr.stop_range, rt=fr.rt)
                return _leg(
                    self.dir,
                    l,
                    fr[from_stop_idx].get_location_idx(),
                    _delta_to_unix(self.base, event_time),
                    _delta_to_unix(self.base, t),
                    RunEnterExit(run, stop_idx, from_stop_idx),
                )
        return None

    def is_transport_active(self, t: int, day: int) -> bool:
        src = self.rtt if self.rtt is not None else self.tt
        return day >= 0 and bool(src.bitfields[src.transport_traffic_days[t]] >> day & 1)

    def get_route_transport(
        self, k: int, t: int, route: int, stop_idx: int
    ) -> Leg | None:
        day_off, mam = divmod(t, _MINUTES_PER_DAY)
        day = self.base_day_idx + day_off
        ev_type = EventType.ARR if self.fwd else EventType.DEP
        transports = self.tt.route_transport_ranges[route]
        for transport in range(transports.start, transports.end):
            event_mam = self.tt.event_mam(transport, stop_idx, ev_type) // _MINUTE
            if event_mam % _MINUTES_PER_DAY != mam:
                continue
            traffic_day = day - event_mam // _MINUTES_PER_DAY
            if not self.is_transport_active(transport, traffic_day):
                continue
            leg = self.find_entry_in_prev_round(
                k,
                Run(t=DayTransport(transport, traffic_day), stop_range=Interval(0, 0)),
                stop_idx,
                t,
            )
            if leg is not None:
                return leg
        return None

    def skip_stop(self, i: int, n: int, stp: Stop, l: int) -> bool:
        if stp.location_idx != l:
            return True
        if self.fwd:
            return i == 0 or not stp.out_allowed
        return i == n - 1 or not stp.in_allowed

    def get_transport(self, k: int, l: int, t: int) -> Leg | None:
        if self.rtt is not None:
            ev_type = EventType.ARR if self.fwd else EventType.DEP
            unix_t = _delta_to_unix(self.base, t)
            for rt_t in self.rtt.location_rt_transports.get(l, ()):
                location_seq = self.rtt.rt_transport_location_seq[rt_t]
                fr = FullRun(self.tt, self.rtt, Run(stop_range=Interval(0, 0), rt=rt_t))
                for i, s in enumerate(location_seq):
                    if self.skip_stop(i, len(location_seq), Stop.from_value(s), l):
                        continue
                    if unix_t != fr[i].time(ev_type):
                        continue
                    leg = self.find_entry_in_prev_round(k, fr, i, t)
                    if leg is not None:
                        return leg

        for route in self.tt.location_routes[l]:
            location_seq = self.tt.route_location_seq[route]
            for i, s in enumerate(location_seq):
                if self.skip_stop(i, len(location_seq), Stop.from_value(s), l):
                    continue
                leg = self.get_route_transport(k, t, route, i)
                if leg is not None:
                    return leg
        return None

    def check_fp(
        self, k: int, l: int, curr_time: int, fp: Footpath
    ) -> tuple[Leg, Leg] | None:
        fp_start = curr_time - self.sign * (fp.duration // _MINUTE)
        transport_leg = self.get_transport(k, fp.target, fp_start)
        if transport_leg is None:
            return None
        fp_leg = _leg(
            self.dir,
            fp.target,
            l,
            _delta_to_unix(self.base, fp_start),
            _delta_to_unix(self.base, curr_time),
            fp,
        )
        return fp_leg, transport_leg

    def get_legs(self, k: int, l: int) -> tuple[Leg, Leg]:
        tt, q, j = self.tt, self.q, self.j
        curr_time = self.state.round_times[k][l]

        if q.dest_match_mode is LocationMatchMode.INTERMODAL and k == j.transfers + 1:
            for dest in q.destination:
                ret: tuple[Leg, Leg] | None = None
                for eq in for_each_meta(tt, LocationMatchMode.INTERMODAL, dest.target):
                    found = self.check_fp(
                        k, l, curr_time, Footpath(target=eq, duration=dest.duration)
                    )
                    if found is not None:
                        found[0].uses = type(dest)(eq, dest.duration, dest.type)
                        ret = found
                    for fp in self.footpaths(eq, towards_start=True):
                        found = self.check_fp(
                            k,
                            l,
                            curr_time,
                            Footpath(target=fp.target, duration=dest.duration + fp.duration),
                        )
                        if found is not None:
                            found[0].uses = type(dest)(eq, fp.duration, dest.type)
                            ret = found
                if ret is not None:
                    return ret
            raise ReconstructionError(
                f"intermodal destination reconstruction failed at k={k}, "
                f"t={j.transfers}, stop={_fmt_location(tt, l)}, time={curr_time}"
            )

        transfer_time = (
            timedelta(0) if k == j.transfers + 1 else tt.locations.transfer_time[l]
        )
        found = self.check_fp(
            k, l, curr_time, Footpath(target=l, duration=transfer_time)
        )
        if found is not None:
            return found

        for fp in self.footpaths(l, towards_start=True):
            found = self.check_fp(k, l, curr_time, fp)
            if found is not None:
                return found

        raise ReconstructionError(
            f"reconstruction failed at k={k}, t={j.transfers}, "
            f"stop={_fmt_location(tt, l)}, time={curr_time}"
        )

    def find_start_footpath(self) -> Leg | None:
        tt, q, j = self.tt, self.q, self.j
        last = j.legs[-1]
        start_l = last.from_ if self.fwd else last.to
        start_time = last.dep_time if self.fwd else last.arr_time

        if (
            q.start_match_mode is not LocationMatchMode.INTERMODAL
            and is_journey_start(tt, q, start_l)
            and self.better_or_eq(j.start_time, start_time)
        ):
            return None

        footpaths = self.footpaths(start_l, towards_start=True)
        j_start_time = _unix_to_delta(self.base, j.start_time)
        fp_target_time = self.state.round_times[0][start_l]

        if q.start_match_mode is LocationMatchMode.INTERMODAL:
            start_station = get_special_station(SpecialStation.START)
            for o in q.start:
                intermodal_leg = _leg(
                    self.dir,
                    start_station,
                    start_l,
                    j.start_time,
                    j.start_time + self.sign * o.duration,
                    o,
                )
                if matches(tt, q.start_match_mode, o.target, start_l) and self.better_or_eq(
                    j.start_time, start_time - self.sign * o.duration
                ):
                    return intermodal_leg
                for fp in footpaths:
                    if matches(
                        tt, q.start_match_mode, o.target, fp.target
                    ) and self.better_or_eq(
                        j.start_time, start_time - self.sign * (o.duration + fp.duration)
                    ):
                        return intermodal_leg
        else:
            for fp in footpaths:
                if (
                    is_journey_start(tt, q, fp.target)
                    and fp_target_time != self.invalid
                    and self.start_matches(
                        j_start_time + self.sign * (fp.duration // _MINUTE),
                        fp_target_time,
                    )
                ):
                    return _leg(
                        self.dir,
                        fp.target,
                        start_l,
                        j.start_time,
                        _delta_to_unix(self.base, fp_target_time),
                        fp,
                    )

        raise ReconstructionError("no valid journey start found")

    def run(self) -> None:
        j = self.j
        l = j.dest
        for i in range(j.transfers + 1):
            k = j.transfers + 1 - i
            fp_leg, transport_leg = self.get_legs(k, l)
            l = transport_leg.from_ if self.fwd else transport_leg.to
            j.add(fp_leg)
            j.add(transport_leg)

        init_fp = self.find_start_footpath()
        if init_fp is not None:
            j.add(init_fp)

        if self.fwd:
            j.legs.reverse()


def reconstruct_journey(
    search_dir: Direction,
    tt: Any,
    rtt: Any,
    query: Query,
    state: RaptorState,
    journey: Journey,
    base: date,
    base_day_idx: int,
) -> None:
    """Fill the legs of ``journey`` from the round times in ``state``.

    Raises ReconstructionError when the round times do not explain the journey.
    """
    _Reconstructor(
        search_dir, tt, rtt, query, state, journey, base, base_day_idx
    ).run()