"""Lower-bound distances to the destination on the lower-bound graph."""

from __future__ import annotations

import heapq
from datetime import timedelta
from typing import Any, Sequence

from .query import Query, for_each_meta

DIST_MAX = (1 << 16) - 1
MAX_TRAVEL_TIME = timedelta(days=1)

_MINUTE = timedelta(minutes=1)


def _minutes(d: timedelta) -> int:
    return d // _MINUTE


def dijkstra(tt: Any, query: Query, lb_graph: Sequence[Sequence[Any]]) -> list[int]:
    """Minutes from every location to the destination; DIST_MAX if unreachable."""
    dists = [DIST_MAX] * tt.n_locations()
    max_travel = _minutes(MAX_TRAVEL_TIME)

    best: dict[int, int] = {}
    for dest in query.destination:
        d = _minutes(dest.duration)
        for x in for_each_meta(tt, query.dest_match_mode, dest.target):
            parent = tt.locations.parents[x]
            l = x if parent is None else parent
            best[l] = min(d, best.get(l, dists[l]))

    pq: list[tuple[int, int]] = []
    for l, d in sorted(best.items()):
        for meta in for_each_meta(tt, query.start_match_mode, l):
            heapq.heappush(pq, (d, meta))
            dists[meta] = min(d, dists[meta])

    while pq:
        d, l = heapq.heappop(pq)
        if dists[l] < d:
            continue
        for edge in lb_graph[l]:
            new_dist = d + _minutes(edge.duration)
            if new_dist < dists[edge.target] and new_dist <= max_travel:
                dists[edge.target] = new_dist
                heapq.heappush(pq, (new_dist, edge.target))
    return dists