"""Working memory of the RAPTOR search."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

MAX_TRANSFERS = 7


def _resized(values: list, n: int, fill: Any) -> list:
    return values[:n] + [fill] * (n - len(values))


def _delta_to_unix(base: date, d: int) -> datetime:
    return datetime.combine(base, time(), tzinfo=timezone.utc) + timedelta(minutes=d)


@dataclass
class RaptorState:
    """Per-location arrival times for every round plus marks."""

    tmp: list[int] = field(default_factory=list)
    station_mark: list[bool] = field(default_factory=list)
    prev_station_mark: list[bool] = field(default_factory=list)
    route_mark: list[bool] = field(default_factory=list)
    best: list[int] = field(default_factory=list)
    round_times: list[list[int]] = field(default_factory=list)
    rt_transport_mark: list[bool] = field(default_factory=list)

    def resize(self, n_locations: int, n_routes: int, n_rt_transports: int) -> None:
        """Grow or shrink all arrays, keeping existing values."""
        self.tmp = _resized(self.tmp, n_locations, 0)
        self.station_mark = _resized(self.station_mark, n_locations, False)
        self.prev_station_mark = _resized(self.prev_station_mark, n_locations, False)
        self.route_mark = _resized(self.route_mark, n_routes, False)
        self.best = _resized(self.best, n_locations, 0)
        rows = _resized(self.round_times, MAX_TRANSFERS + 1, [])
        self.round_times = [_resized(row, n_locations, 0) for row in rows]
        self.rt_transport_mark = _resized(self.rt_transport_mark, n_rt_transports, False)

    def format(self, tt: Any, base: date, invalid: int) -> str:
        """Best and per-round times of every location that was reached."""

        def fmt_delta(d: int) -> str:
            if d == invalid:
                return "_" * 16
            return f"{_delta_to_unix(base, d).strftime('%Y-%m-%d %H:%M'):16}"

        out: list[str] = []
        for l in range(tt.n_locations()):
            rounds = [row[l] for row in self.round_times]
            if self.best[l] == invalid and all(t == invalid for t in rounds):
                continue
            location = f"({tt.locations.names[l]}, {tt.locations.ids[l]})"
            out.append(f"{location:80}  best={fmt_delta(self.best[l])}, round_times: ")
            out.extend(f"{fmt_delta(t)} " for t in rounds)
            out.append("\n")
        return "".join(out)