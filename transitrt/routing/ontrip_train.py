"""Queries that start while sitting in a train."""

from __future__ import annotations

import logging
from typing import Any

from ..stop import Stop
from ..timetable import DayTransport, EventType
from .query import Offset, Query

log = logging.getLogger(__name__)


def generate_ontrip_train_query(
    tt: Any, transport: DayTransport, stop_idx: int, query: Query
) -> None:
    """Fill ``query`` with starts at every stop of ``transport`` from ``stop_idx`` on.

    Each start is offset by the ride from ``stop_idx`` plus the transfer time
    at that stop; the query start time becomes the arrival at ``stop_idx``.
    """
    if stop_idx == 0:
        raise ValueError("first arrival time not defined")

    location_seq = tt.route_location_seq[tt.transport_route[transport.t_idx]]
    if stop_idx >= len(location_seq):
        raise ValueError(
            f"invalid stop index {stop_idx} [{len(location_seq)} stops]"
        )

    time_at_first = tt.event_time(transport, stop_idx, EventType.ARR)
    for i in range(stop_idx, len(location_seq)):
        l_idx = Stop.from_value(location_seq[i]).location_idx
        arrival = tt.event_time(transport, i, EventType.ARR)
        with_transfer = arrival + tt.locations.transfer_time[l_idx]
        query.start.append(Offset(l_idx, with_transfer - time_at_first, i))
        log.debug(
            "first_arrival=%s, stop=%s, arrival=%s, arrival_with_transfer=%s, offset=%s",
            time_at_first, l_idx, arrival, with_transfer, with_transfer - time_at_first,
        )
    query.start_time = time_at_first