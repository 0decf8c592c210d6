from collections import namedtuple
from datetime import timedelta
from types import SimpleNamespace

from transitrt.routing.dijkstra import DIST_MAX, MAX_TRAVEL_TIME, dijkstra
from transitrt.routing.query import Offset, Query

Fp = namedtuple("Fp", "target duration")


def _tt(n, parents=None):
    return SimpleNamespace(
        n_locations=lambda: n,
        locations=SimpleNamespace(
            parents=parents or [None] * n,
            children=[[] for _ in range(n)],
            equivalences=[[] for _ in range(n)],
        ),
    )


def _m(x):
    return timedelta(minutes=x)


def test_chain_distances():
    graph = [[Fp(1, _m(5))], [Fp(2, _m(7))], [], []]
    q = Query(destination=[Offset(0, _m(0))])
    dists = dijkstra(_tt(4), q, graph)
    assert dists[0] == 0
    assert dists[1] == 5
    assert dists[2] == 12
    assert dists[3] == DIST_MAX


def test_shortest_path_wins():
    graph = [[Fp(1, _m(10)), Fp(2, _m(1))], [], [Fp(1, _m(2))]]
    q = Query(destination=[Offset(0, _m(0))])
    dists = dijkstra(_tt(3), q, graph)
    assert dists[1] == dists[2] + 2
    assert dists[1] < 10


def test_destination_duration_is_start_distance():
    graph = [[Fp(1, _m(5))], []]
    q = Query(destination=[Offset(0, _m(4))])
    dists = dijkstra(_tt(2), q, graph)
    assert dists[0] == 4
    assert dists[1] == dists[0] + 5


def test_edges_beyond_max_travel_time_are_ignored():
    too_long = MAX_TRAVEL_TIME + _m(1)
    graph = [[Fp(1, too_long)], []]
    q = Query(destination=[Offset(0, _m(0))])
    assert dijkstra(_tt(2), q, graph)[1] == DIST_MAX


def test_destination_child_maps_to_parent():
    graph = [[], [], []]
    q = Query(destination=[Offset(2, _m(3))])
    dists = dijkstra(_tt(3, parents=[None, None, 1]), q, graph)
    assert dists[1] == 3
    assert dists[2] == DIST_MAX