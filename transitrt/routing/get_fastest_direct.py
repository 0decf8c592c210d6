"""Lower bounds for direct connections that need no transport."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from .query import Direction, Query, for_each_meta

MAX_DURATION = timedelta(minutes=(1 << 15) - 1)


def get_fastest_direct_with_foot(tt: Any, query: Query, direction: Direction) -> timedelta:
    """Fastest start -> footpath -> destination, or MAX_DURATION."""
    footpaths = (
        tt.locations.footpaths_out
        if direction is Direction.FORWARD
        else tt.locations.footpaths_in
    )[query.prf_idx]
    best = MAX_DURATION
    for start in query.start:
        for fp in footpaths[start.target]:
            for dest in query.destination:
                if dest.target == fp.target:
                    best = min(best, start.duration + fp.duration + dest.duration)
    return best


def get_fastest_start_dest_overlap(tt: Any, query: Query) -> timedelta:
    """Fastest connection where a start location is also a destination."""
    best = MAX_DURATION
    for s in query.start:
        for start in for_each_meta(tt, query.start_match_mode, s.target):
            for dest in query.destination:
                if start == dest.target:
                    best = min(best, s.duration + dest.duration)
    return best


def get_fastest_direct(tt: Any, query: Query, direction: Direction) -> timedelta:
    """The better of the footpath and the overlap lower bound."""
    return min(
        get_fastest_direct_with_foot(tt, query, direction),
        get_fastest_start_dest_overlap(tt, query),
    )