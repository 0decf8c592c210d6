from datetime import date, datetime, timedelta, timezone

import pytest

from transitrt.rt_timetable import (
    DELTA_MAX,
    DELTA_MIN,
    RtTimetable,
    TripInfo,
    TripUpdate,
    create_rt_timetable,
)
from transitrt.stop import Stop
from transitrt.timetable import (
    INVALID_IDX,
    DayTransport,
    Debug,
    EventType,
    Interval,
    Location,
    NewTransport,
    Timetable,
    TripDebug,
)

DAY = date(2019, 5, 3)


def build_timetable():
    tt = Timetable(date_range=Interval(date(2019, 5, 1), date(2019, 5, 10)))
    locs = [
        tt.locations.register_location(Location(id=n, name=n)) for n in ("A", "B", "C")
    ]
    stops = [Stop(l, True, True) for l in locs]
    route = tt.register_route(stops, [3])
    src_file = tt.register_source_file("trips.txt")
    trip = tt.register_trip_id("T1", 0, "RE 1", TripDebug(src_file, 1, 4), 0, [])
    merged = tt.register_merged_trip([trip])
    bf = tt.register_bitfield(1 << tt.day_idx(DAY))
    tt.add_transport(NewTransport(bitfield_idx=bf, route_idx=route, external_trip_ids=[merged]))
    tt.finish_route()
    tt.route_stop_time_ranges.append(Interval(0, 4))
    tt.route_stop_times.extend(
        timedelta(minutes=m) for m in (600, 630, 635, 660)
    )
    return tt, locs


def events():
    return [(0, EventType.DEP), (1, EventType.ARR), (1, EventType.DEP), (2, EventType.ARR)]


def test_create_rt_timetable_copies_state():
    tt, locs = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    assert rtt.bitfields == tt.bitfields
    assert rtt.transport_traffic_days == tt.transport_traffic_days
    assert rtt.base_day == DAY
    assert rtt.base_day_idx == tt.day_idx(DAY)
    assert rtt.n_rt_transports() == 0
    assert rtt.location_rt_transports[locs[-1]] == []


def test_add_rt_transport_copies_times_and_clears_bit():
    tt, locs = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    t = DayTransport(0, tt.day_idx(DAY))
    rt_t = rtt.add_rt_transport(0, tt, t)
    assert rt_t == 0
    assert rtt.n_rt_transports() == 1
    for stop_idx, ev in events():
        assert rtt.unix_event_time(rt_t, stop_idx, ev) == tt.event_time(t, stop_idx, ev)
    assert not (rtt.bitfields[rtt.transport_traffic_days[0]] >> t.day) & 1
    assert (tt.bitfields[tt.transport_traffic_days[0]] >> t.day) & 1
    for l in locs:
        assert rtt.location_rt_transports[l] == [rt_t]
    assert rtt.resolve_rt(t) == rt_t
    assert rtt.resolve_static(rt_t) == t
    assert rtt.resolve_rt(DayTransport(0, t.day + 1)) == INVALID_IDX
    assert rtt.rt_transport_is_cancelled == [False]
    assert rtt.rt_transport_section_clasz[rt_t] == tt.route_section_clasz[0]
    assert rtt.rt_transport_location_seq[rt_t] == tt.route_location_seq[0]


def test_add_rt_transport_with_explicit_sequences():
    tt, locs = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    t = DayTransport(0, tt.day_idx(DAY))
    seq = [Stop(locs[0], True, True).value(), Stop(locs[2], True, True).value()]
    rt_t = rtt.add_rt_transport(0, tt, t, seq, [100, 200])
    assert rtt.rt_transport_location_seq[rt_t] == seq
    assert rtt.event_time(rt_t, 0, EventType.DEP) == 100
    assert rtt.event_time(rt_t, 1, EventType.ARR) == 200
    assert rtt.location_rt_transports[locs[1]] == []


def test_update_time_roundtrip():
    tt, _ = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    t = DayTransport(0, tt.day_idx(DAY))
    rt_t = rtt.add_rt_transport(0, tt, t)
    new_time = tt.event_time(t, 1, EventType.ARR) + timedelta(minutes=5)
    rtt.update_time(rt_t, 1, EventType.ARR, new_time)
    assert rtt.unix_event_time(rt_t, 1, EventType.ARR) == new_time
    assert rtt.unix_event_time(rt_t, 1, EventType.DEP) == tt.event_time(
        t, 1, EventType.DEP
    )


def test_update_time_out_of_range():
    tt, _ = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    rt_t = rtt.add_rt_transport(0, tt, DayTransport(0, tt.day_idx(DAY)))
    with pytest.raises(IndexError):
        rtt.update_time(rt_t, 0, EventType.ARR, datetime(2019, 5, 3, tzinfo=timezone.utc))
    with pytest.raises(IndexError):
        rtt.event_time(rt_t, 2, EventType.DEP)


def test_unix_to_delta_clamps():
    rtt = RtTimetable(base_day=DAY)
    base = datetime(2019, 5, 3, tzinfo=timezone.utc)
    assert rtt.unix_to_delta(base) == 0
    assert rtt.unix_to_delta(base + timedelta(days=365)) == DELTA_MAX
    assert rtt.unix_to_delta(base - timedelta(days=365)) == DELTA_MIN


def test_change_callback_dispatch_and_reset():
    rtt = RtTimetable()
    calls = []
    rtt.set_change_callback(lambda *args: calls.append(args))
    t = DayTransport(0, 1)
    rtt.dispatch_event_change(t, 2, EventType.DEP, timedelta(minutes=3), False)
    assert calls == [(t, 2, EventType.DEP, timedelta(minutes=3), False)]
    rtt.reset_change_callback()
    rtt.dispatch_event_change(t, 2, EventType.DEP, timedelta(minutes=3), False)
    assert len(calls) == 1


def test_transport_name_and_dbg():
    tt, _ = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    rt_t = rtt.add_rt_transport(0, tt, DayTransport(0, tt.day_idx(DAY)))
    assert rtt.transport_name(tt, rt_t) == "RE 1"
    assert rtt.dbg(tt, rt_t) == Debug("trips.txt", 1, 4)
    rtt.rt_transport_display_names[rt_t] = "ICE 9"
    assert rtt.transport_name(tt, rt_t) == "ICE 9"


def test_additional_trip_lookups():
    tt, _ = build_timetable()
    rtt = create_rt_timetable(tt, DAY)
    rt_t = rtt.add_rt_transport(0, tt, DayTransport(0, tt.day_idx(DAY)))
    rtt.rt_transport_static_transport[rt_t] = 0
    assert rtt.transport_name(tt, rt_t) == "?"
    assert rtt.dbg(tt, rt_t) == Debug("RT")
    assert rtt.resolve_static(rt_t) == DayTransport.invalid()


def test_trip_update_is_cancel():
    cancel = TripUpdate(id=("T1", 0), day=DAY)
    assert cancel.is_cancel()
    change = TripUpdate(id=("T1", 0), day=DAY, info=TripInfo(stop_seq=[1, 2]))
    assert not change.is_cancel()