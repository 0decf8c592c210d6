from collections import namedtuple
from datetime import timedelta
from types import SimpleNamespace

from transitrt.routing.get_fastest_direct import (
    MAX_DURATION,
    get_fastest_direct,
    get_fastest_direct_with_foot,
    get_fastest_start_dest_overlap,
)
from transitrt.routing.query import Direction, LocationMatchMode, Offset, Query

Fp = namedtuple("Fp", "target duration")


def _m(x):
    return timedelta(minutes=x)


def _tt():
    out = [[Fp(1, _m(10))], [], [], []]
    inn = [[], [Fp(0, _m(10))], [], []]
    return SimpleNamespace(
        locations=SimpleNamespace(
            footpaths_out=[out],
            footpaths_in=[inn],
            children=[[2], [], [], []],
            equivalences=[[], [], [], []],
        )
    )


def test_footpath_direct_forward():
    q = Query(start=[Offset(0, _m(2))], destination=[Offset(1, _m(3))])
    assert get_fastest_direct_with_foot(_tt(), q, Direction.FORWARD) == _m(15)


def test_footpath_direct_no_match():
    q = Query(start=[Offset(0, _m(2))], destination=[Offset(3, _m(3))])
    assert get_fastest_direct_with_foot(_tt(), q, Direction.FORWARD) == MAX_DURATION


def test_footpath_direct_backward_uses_incoming():
    q = Query(start=[Offset(1, _m(0))], destination=[Offset(0, _m(0))])
    assert get_fastest_direct_with_foot(_tt(), q, Direction.BACKWARD) == _m(10)
    assert get_fastest_direct_with_foot(_tt(), q, Direction.FORWARD) == MAX_DURATION


def test_overlap_same_location():
    q = Query(start=[Offset(3, _m(4))], destination=[Offset(3, _m(1))])
    assert get_fastest_start_dest_overlap(_tt(), q) == _m(4) + _m(1)


def test_overlap_through_children_only_with_mode():
    q = Query(
        start=[Offset(0, _m(1))],
        destination=[Offset(2, _m(1))],
        start_match_mode=LocationMatchMode.ONLY_CHILDREN,
    )
    assert get_fastest_start_dest_overlap(_tt(), q) == _m(2)
    q.start_match_mode = LocationMatchMode.EXACT
    assert get_fastest_start_dest_overlap(_tt(), q) == MAX_DURATION


def test_fastest_direct_is_minimum_of_both():
    q = Query(
        start=[Offset(0, _m(2)), Offset(1, _m(30))],
        destination=[Offset(1, _m(3))],
    )
    tt = _tt()
    result = get_fastest_direct(tt, q, Direction.FORWARD)
    assert result == min(
        get_fastest_direct_with_foot(tt, q, Direction.FORWARD),
        get_fastest_start_dest_overlap(tt, q),
    )
    assert result <= get_fastest_start_dest_overlap(tt, q)