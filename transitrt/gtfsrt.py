"""Applying GTFS-RT trip updates (in their JSON form) to a real-time timetable."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, fields
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterator

from .rt_timetable import RtTimetable
from .run import Run
from .stop import Stop
from .timetable import MAX_DAYS, DayTransport, EventType, Timetable

log = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TRIP_RELATIONSHIPS = {
    0: "SCHEDULED",
    1: "ADDED",
    2: "UNSCHEDULED",
    3: "CANCELED",
    5: "REPLACEMENT",
    6: "DUPLICATED",
    7: "DELETED",
}
_STOP_RELATIONSHIPS = {0: "SCHEDULED", 1: "SKIPPED", 2: "NO_DATA", 3: "UNSCHEDULED"}


class FeedParseError(ValueError):
    """A feed message could not be parsed."""


@dataclass
class Statistics:
    """Counters describing the outcome of one feed update."""

    parser_error: bool = False
    no_header: bool = False
    total_entities: int = 0
    total_entities_success: int = 0
    total_entities_fail: int = 0
    unsupported_deleted: int = 0
    unsupported_vehicle: int = 0
    unsupported_alert: int = 0
    unsupported_no_trip_id: int = 0
    no_trip_update: int = 0
    trip_update_without_trip: int = 0
    trip_resolve_error: int = 0
    unsupported_schedule_relationship: int = 0

    def format(self) -> str:
        """Non-zero counters as ``name=value``, entity counters with a percentage."""
        no_percent = {"parser_error", "no_header", "total_entities"}
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if not value:
                continue
            text = f"{f.name}={int(value) if isinstance(value, bool) else value}"
            if f.name not in no_percent:
                share = (
                    value / self.total_entities * 100
                    if self.total_entities
                    else math.inf
                )
                text += f" ({share:g}%)"
            parts.append(text)
        return ", ".join(parts)

    def __str__(self) -> str:
        return self.format()


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    return value


def parse_feed_json(json_text: str | bytes) -> dict:
    """Parse a feed message from its JSON form; raises FeedParseError."""
    try:
        feed = json.loads(json_text)
    except (ValueError, UnicodeDecodeError) as e:
        raise FeedParseError(f"invalid feed message: {e}") from e
    if not isinstance(feed, dict):
        raise FeedParseError("feed message must be a JSON object")
    return _normalize(feed)


def feed_to_json(feed: dict) -> str:
    """Serialise a feed message to indented JSON."""
    return json.dumps(_normalize(feed), indent=1)


def _relationship(value: Any, names: dict[int, str]) -> str:
    if value is None:
        return "SCHEDULED"
    if isinstance(value, int):
        return names.get(value, str(value))
    return str(value)


def _hhmm_to_min(s: str) -> timedelta:
    parts = [int(p) for p in s.split(":")]
    hours, minutes = parts[0], parts[1] if len(parts) > 1 else 0
    return timedelta(minutes=hours * 60 + minutes)


def _parse_date(s: str) -> date:
    n = int(s)
    return date(n // 10000, n // 100 % 100, n % 100)


def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def _split(d: timedelta) -> tuple[timedelta, timedelta]:
    minutes = d // timedelta(minutes=1)
    days = _round_half_away(minutes / 1440)
    return timedelta(days=days), timedelta(minutes=minutes - days * 1440)


def _truncate_minutes(seconds: int) -> int:
    return int(seconds) // 60 if seconds >= 0 else -((-int(seconds)) // 60)


def _resolve_static(
    today: date, tt: Timetable, src: int, td: dict
) -> tuple[Run, int | None]:
    run = Run()
    trip: int | None = None
    trip_id = td.get("tripId")
    start_date = _parse_date(td["startDate"]) if "startDate" in td else None
    start_time = _hhmm_to_min(td["startTime"]) if "startTime" in td else None
    base = start_date if start_date is not None else today
    first_day = tt.internal_interval_days().start

    for trip_id_idx, trip_idx in tt.trip_id_to_idx:
        if tt.trip_id_src[trip_id_idx] != src or tt.trip_id_strings[trip_id_idx] != trip_id:
            continue
        for t, stop_range in tt.trip_transport_ranges[trip_idx]:
            utc_dep = tt.event_mam(t, stop_range.start, EventType.DEP)
            gtfs_static_dep = utc_dep + tt.transport_first_dep_offset[t]
            if start_time is not None and gtfs_static_dep != start_time:
                continue
            day_offset, _ = _split(gtfs_static_dep - utc_dep)
            day_idx = (base + day_offset - first_day).days
            if day_idx > MAX_DAYS or day_idx < 0:
                continue
            if tt.bitfields[tt.transport_traffic_days[t]] >> day_idx & 1:
                run.t = DayTransport(t, day_idx)
                run.stop_range = stop_range
                trip = trip_idx
    return run, trip


def gtfsrt_resolve_run(
    today: date, tt: Timetable, rtt: RtTimetable, src: int, trip_descriptor: dict
) -> tuple[Run, int | None]:
    """Find the run a trip descriptor refers to, and its trip index."""
    run, trip = _resolve_static(today, tt, src, _normalize(trip_descriptor))
    if run.t in rtt.static_trip_lookup:
        run.rt = rtt.static_trip_lookup[run.t]
    return run, trip


@dataclass
class _Propagation:
    pred_time: datetime
    pred_delay: timedelta


def _update_delay(
    tt: Timetable,
    rtt: RtTimetable,
    r: Run,
    stop_idx: int,
    ev_type: EventType,
    delay: timedelta,
    minimum: datetime | None,
) -> _Propagation:
    static_time = tt.event_time(r.t, stop_idx, ev_type)
    new_time = static_time + delay
    if minimum is not None:
        new_time = max(minimum, new_time)
    rtt.update_time(r.rt, stop_idx, ev_type, new_time)
    rtt.dispatch_event_change(r.t, stop_idx, ev_type, delay, False)
    return _Propagation(rtt.unix_event_time(r.rt, stop_idx, ev_type), delay)


def _update_event(
    tt: Timetable,
    rtt: RtTimetable,
    r: Run,
    stop_idx: int,
    ev_type: EventType,
    ev: dict,
    pred_time: datetime | None,
) -> _Propagation:
    if "delay" in ev:
        delay = timedelta(minutes=_truncate_minutes(int(ev["delay"])))
        return _update_delay(tt, rtt, r, stop_idx, ev_type, delay, pred_time)
    static_time = tt.event_time(r.t, stop_idx, ev_type)
    new_time = _EPOCH + timedelta(minutes=_truncate_minutes(int(ev["time"])))
    rtt.update_time(
        r.rt,
        stop_idx,
        ev_type,
        max(pred_time, new_time) if pred_time is not None else new_time,
    )
    rtt.dispatch_event_change(r.t, stop_idx, ev_type, new_time - static_time, False)
    return _Propagation(new_time, new_time - static_time)


def _cancel_run(rtt: RtTimetable, r: Run) -> None:
    if r.is_rt():
        rtt.rt_transport_is_cancelled[r.rt] = True
    if r.is_scheduled():
        bf = rtt.bitfields[rtt.transport_traffic_days[r.t.t_idx]]
        rtt.bitfields.append(bf & ~(1 << r.t.day))
        rtt.transport_traffic_days[r.t.t_idx] = len(rtt.bitfields) - 1


def _seq_numbers(encoded: list[int], n: int) -> Iterator[int]:
    if not encoded:
        yield from range(n)
    elif len(encoded) == 1:
        yield from (encoded[0] * (i + 1) for i in range(n))
    else:
        yield from encoded[:n]


def _has_event(ev: Any) -> bool:
    return isinstance(ev, dict) and ("delay" in ev or "time" in ev)


def _update_run(
    src: int, tt: Timetable, rtt: RtTimetable, trip: int, r: Run, stops: list[dict]
) -> None:
    if not r.is_rt():
        r.rt = rtt.add_rt_transport(src, tt, r.t)
    else:
        rtt.rt_transport_is_cancelled[r.rt] = False

    location_seq = tt.route_location_seq[tt.transport_route[r.t.t_idx]]
    rt_seq = rtt.rt_transport_location_seq[r.rt]
    epoch = _EPOCH

    pred: _Propagation | None = None
    if r.stop_range.start > 0:
        pred = _Propagation(
            rtt.unix_event_time(r.rt, r.stop_range.start, EventType.ARR), timedelta(0)
        )

    upd_idx = 0
    seqs = _seq_numbers(tt.trip_stop_seq_numbers[trip], r.stop_range.size())
    for stop_idx, seq in enumerate(seqs, start=r.stop_range.start):
        upd = stops[upd_idx] if upd_idx < len(stops) else None
        static_id = tt.locations.ids[Stop.from_value(location_seq[stop_idx]).location_idx]
        matches = upd is not None and (
            ("stopSequence" in upd and int(upd["stopSequence"]) == seq)
            or ("stopId" in upd and upd["stopId"] == static_id)
        )

        if matches:
            current = Stop.from_value(rt_seq[stop_idx])
            assigned = upd.get("stopTimeProperties", {}).get("assignedStopId")
            relationship = _relationship(upd.get("scheduleRelationship"), _STOP_RELATIONSHIPS)
            if relationship == "SKIPPED":
                rt_seq[stop_idx] = Stop(current.location_idx, False, False).value()
            elif assigned is not None or ("stopId" in upd and upd["stopId"] != static_id):
                new_id = assigned if assigned is not None else upd["stopId"]
                l = tt.locations.location_id_to_idx.get((new_id, src))
                if l is not None:
                    rt_seq[stop_idx] = Stop(l, current.in_allowed, current.out_allowed).value()
                    transports = rtt.location_rt_transports[l]
                    if r.rt not in transports:
                        transports.append(r.rt)
                else:
                    log.error(
                        'stop assignment: src=%s, stop_id="%s" not found', src, new_id
                    )
            else:
                rt_seq[stop_idx] = location_seq[stop_idx]

        if stop_idx != r.stop_range.start:
            if matches and _has_event(upd.get("arrival")):
                pred = _update_event(
                    tt, rtt, r, stop_idx, EventType.ARR, upd["arrival"],
                    pred.pred_time if pred else epoch,
                )
            elif pred is not None:
                pred = _update_delay(
                    tt, rtt, r, stop_idx, EventType.ARR, pred.pred_delay, pred.pred_time
                )

        if (
            stop_idx == 0
            and matches
            and _has_event(upd.get("arrival"))
            and "departure" not in upd
        ):
            pred = _update_event(
                tt, rtt, r, stop_idx, EventType.DEP, upd["arrival"], epoch
            )
        elif stop_idx != len(location_seq) - 1:
            if matches and _has_event(upd.get("departure")):
                pred = _update_event(
                    tt, rtt, r, stop_idx, EventType.DEP, upd["departure"],
                    pred.pred_time if pred else epoch,
                )
            elif pred is not None:
                pred = _update_delay(
                    tt, rtt, r, stop_idx, EventType.DEP, pred.pred_delay, pred.pred_time
                )

        if matches:
            upd_idx += 1


def gtfsrt_update_msg(
    tt: Timetable, rtt: RtTimetable, src: int, tag: str, msg: dict
) -> Statistics:
    """Apply all trip updates of a feed message; returns what happened."""
    msg = _normalize(msg)
    if "header" not in msg:
        return Statistics(no_header=True)

    entities = msg.get("entity", [])
    stats = Statistics(total_entities=len(entities))
    message_time = _EPOCH + timedelta(seconds=int(msg["header"].get("timestamp", 0)))
    today = message_time.date()

    for entity in entities:
        eid = entity.get("id")
        trip_update = entity.get("tripUpdate")
        td = trip_update.get("trip") if isinstance(trip_update, dict) else None
        if entity.get("isDeleted"):
            log.error("unsupported deleted (tag=%s, id=%s)", tag, eid)
            stats.unsupported_deleted += 1
            continue
        if "alert" in entity:
            log.error("unsupported alert (tag=%s, id=%s)", tag, eid)
            stats.unsupported_alert += 1
            continue
        if "vehicle" in entity:
            log.error("unsupported vehicle (tag=%s, id=%s)", tag, eid)
            stats.unsupported_vehicle += 1
            continue
        if trip_update is None:
            log.error("unsupported no trip update (tag=%s, id=%s)", tag, eid)
            stats.no_trip_update += 1
            continue
        if td is None:
            log.error("unsupported no trip in trip update (tag=%s, id=%s)", tag, eid)
            stats.trip_update_without_trip += 1
            continue
        if "tripId" not in td:
            log.error("unsupported trip without trip_id (tag=%s, id=%s)", tag, eid)
            stats.unsupported_no_trip_id += 1
            continue
        relationship = _relationship(td.get("scheduleRelationship"), _TRIP_RELATIONSHIPS)
        if relationship not in ("SCHEDULED", "CANCELED"):
            log.error(
                "unsupported schedule relationship %s (tag=%s, id=%s)",
                relationship, tag, eid,
            )
            stats.unsupported_schedule_relationship += 1
            continue

        try:
            r, trip = gtfsrt_resolve_run(today, tt, rtt, src, td)
            if not r.valid():
                log.error("could not resolve (tag=%s) %s", tag, json.dumps(td))
                stats.trip_resolve_error += 1
                continue
            if relationship == "CANCELED":
                _cancel_run(rtt, r)
            else:
                _update_run(src, tt, rtt, trip, r, trip_update.get("stopTimeUpdate", []))
            stats.total_entities_success += 1
        except Exception as e:  # noqa: BLE001 - one bad entity must not stop the feed
            stats.total_entities_fail += 1
            log.error(
                "GTFS-RT error (tag=%s): time=%s, entity=%s, message=%s, error=%s",
                tag, message_time.strftime("%H:%M:%S"), eid, json.dumps(entity), e,
            )
    return stats


def gtfsrt_update_buf(
    tt: Timetable, rtt: RtTimetable, src: int, tag: str, buf: str | bytes
) -> Statistics:
    """Parse a serialised feed message and apply it."""
    try:
        msg = parse_feed_json(buf)
    except FeedParseError:
        log.error(
            "GTFS-RT error (tag=%s): unable to parse message: %s", tag, buf[:1000]
        )
        return Statistics(parser_error=True)
    return gtfsrt_update_msg(tt, rtt, src, tag, msg)