from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from transitrt.routing.journey import Journey, Leg, RunEnterExit
from transitrt.routing.query import Offset
from transitrt.run import Run
from transitrt.timetable import Footpath

MIDNIGHT = datetime(2020, 3, 30, tzinfo=timezone.utc)


def make_tt():
    return SimpleNamespace(
        locations=SimpleNamespace(names=["X", "A", "B"], ids=["x", "a", "b"])
    )


def test_run_enter_exit_orders_stops():
    ree = RunEnterExit(Run(), 3, 1)
    assert (ree.stop_range.start, ree.stop_range.end) == (1, 4)
    ree = RunEnterExit(Run(), 0, 2)
    assert (ree.stop_range.start, ree.stop_range.end) == (0, 3)


def test_add_appends_legs():
    j = Journey(start_time=MIDNIGHT, dest_time=MIDNIGHT)
    leg = Leg(1, 2, MIDNIGHT, MIDNIGHT, Footpath(target=2, duration=timedelta(0)))
    j.add(leg)
    j.add(leg)
    assert j.legs == [leg, leg]


def test_travel_time_is_absolute():
    start = MIDNIGHT + timedelta(hours=5)
    dest = MIDNIGHT + timedelta(hours=6, minutes=15)
    fwd = Journey(start_time=start, dest_time=dest)
    bwd = Journey(start_time=dest, dest_time=start)
    assert fwd.travel_time() == timedelta(minutes=75)
    assert bwd.travel_time() == fwd.travel_time()


def test_format_without_legs():
    j = Journey(start_time=MIDNIGHT + timedelta(hours=5), dest_time=MIDNIGHT, transfers=2)
    text = j.format(make_tt())
    assert text == "no legs [start_time=2020-03-30 05:00, dest_time=2020-03-30 00:00, transfers=2\n"


def test_format_footpath_journey():
    dep = MIDNIGHT + timedelta(hours=5)
    arr = dep + timedelta(minutes=5)
    j = Journey(start_time=dep, dest_time=arr, dest=2)
    j.add(Leg(1, 2, dep, arr, Footpath(target=2, duration=timedelta(minutes=5))))
    expected = (
        "[2020-03-30 05:00, 2020-03-30 05:05]\n"
        "TRANSFERS: 0\n"
        "     FROM: (A, a) [2020-03-30 05:00]\n"
        "       TO: (B, b) [2020-03-30 05:05]\n"
        "leg 0: (A, a) [2020-03-30 05:00] -> (B, b) [2020-03-30 05:05]\n"
        "  FOOTPATH (duration=5)\n"
    )
    assert j.format(make_tt()) == expected


def test_leg_format_offset_and_indent():
    leg = Leg(0, 1, MIDNIGHT, MIDNIGHT, Offset(1, timedelta(minutes=7), 3))
    assert leg.format(make_tt(), None, 2) == "    MUMO (id=3, duration=7)\n"


def test_debug_format_prefixes_duration():
    dep = MIDNIGHT
    arr = dep + timedelta(minutes=5)
    j = Journey(start_time=dep, dest_time=arr)
    j.add(Leg(1, 2, dep, arr, Footpath(target=2, duration=timedelta(minutes=5))))
    assert j.format(make_tt(), debug=True).startswith(" DURATION: 5min [")