"""The static timetable: locations, routes, transports and their metadata."""

from __future__ import annotations

import hashlib
import logging
import pickle
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Iterator, TypeVar
from zoneinfo import ZoneInfo

from .stop import Stop

log = logging.getLogger(__name__)

MAX_DAYS = 512
MAX_PROFILES = 8
TIMETABLE_OFFSET = timedelta(days=5)
MINUTES_PER_DAY = 1440
INVALID_IDX = -1

_FILE_MAGIC = b"TRANSITRT-TIMETABLE\x01\n"
_DIGEST_SIZE = hashlib.sha256().digest_size

T = TypeVar("T")


def _midnight_utc(d: date) -> datetime:
    return datetime.combine(d, time(), tzinfo=timezone.utc)


class EventType(Enum):
    """Arrival or departure at a stop."""

    ARR = "arr"
    DEP = "dep"


class LocationType(Enum):
    """Kind of a location."""

    GENERATED_TRACK = "generated_track"
    TRACK = "track"
    STATION = "station"


@dataclass(frozen=True)
class Interval(Generic[T]):
    """Half-open interval [start, end)."""

    start: T
    end: T

    def contains(self, value: T) -> bool:
        return self.start <= value < self.end

    def size(self) -> Any:
        return self.end - self.start

    def shift(self, offset: Any) -> Interval[T]:
        """Return the interval moved by ``offset``."""
        return Interval(self.start + offset, self.end + offset)

    def __iter__(self) -> Iterator[T]:
        return iter(range(self.start, self.end))


@dataclass(frozen=True)
class Footpath:
    """A walking connection to ``target`` taking ``duration``."""

    target: int
    duration: timedelta


@dataclass
class Location:
    """A stop, station or track with its attributes."""

    id: str
    name: str
    pos: tuple[float, float] = (0.0, 0.0)
    src: int = 0
    type: LocationType = LocationType.STATION
    parent: int | None = None
    timezone_idx: int | None = None
    transfer_time: timedelta = timedelta(minutes=2)
    equivalences: tuple[int, ...] = ()
    l: int = INVALID_IDX


@dataclass(frozen=True)
class DayTransport:
    """A transport on a specific day (index relative to the internal interval)."""

    t_idx: int
    day: int

    @classmethod
    def invalid(cls) -> DayTransport:
        return cls(INVALID_IDX, INVALID_IDX)

    def is_valid(self) -> bool:
        return self.t_idx >= 0 and self.day >= 0


@dataclass(frozen=True)
class TripDebug:
    """Where a trip was defined in its source file."""

    source_file_idx: int
    line_number_from: int
    line_number_to: int


@dataclass(frozen=True)
class Debug:
    """Human readable source position of a transport."""

    path: str
    line_from: int = 0
    line_to: int = 0

    def __str__(self) -> str:
        return f"{self.path}:{self.line_from}:{self.line_to}"


@dataclass(frozen=True)
class TripDirection:
    """Direction text: either a stored string or the name of a location."""

    string_idx: int | None = None
    location: int | None = None

    def __post_init__(self) -> None:
        if (self.string_idx is None) == (self.location is None):
            raise ValueError("a trip direction needs exactly one of string_idx, location")


@dataclass
class NewTransport:
    """Everything needed to add one transport to a route."""

    bitfield_idx: int
    route_idx: int
    first_dep_offset: timedelta = timedelta(0)
    external_trip_ids: list[int] = field(default_factory=list)
    section_attributes: list[int] = field(default_factory=list)
    section_providers: list[int] = field(default_factory=list)
    section_directions: list[int] = field(default_factory=list)
    section_lines: list[int] = field(default_factory=list)
    stop_seq_numbers: list[int] = field(default_factory=list)
    route_colors: list[Any] = field(default_factory=list)


@dataclass
class Locations:
    """Column storage of all locations."""

    location_id_to_idx: dict[tuple[str, int], int] = field(default_factory=dict)
    names: list[str] = field(default_factory=list)
    ids: list[str] = field(default_factory=list)
    coordinates: list[tuple[float, float]] = field(default_factory=list)
    src: list[int] = field(default_factory=list)
    transfer_time: list[timedelta] = field(default_factory=list)
    types: list[LocationType] = field(default_factory=list)
    parents: list[int | None] = field(default_factory=list)
    location_timezones: list[int | None] = field(default_factory=list)
    equivalences: list[list[int]] = field(default_factory=list)
    children: list[list[int]] = field(default_factory=list)
    preprocessing_footpaths_out: list[list[Footpath]] = field(default_factory=list)
    preprocessing_footpaths_in: list[list[Footpath]] = field(default_factory=list)
    footpaths_out: list[list[list[Footpath]]] = field(
        default_factory=lambda: [[] for _ in range(MAX_PROFILES)]
    )
    footpaths_in: list[list[list[Footpath]]] = field(
        default_factory=lambda: [[] for _ in range(MAX_PROFILES)]
    )
    timezones: list[Any] = field(default_factory=list)

    def register_timezone(self, tz: Any) -> int:
        """Store a timezone (a name or a tzinfo) and return its index."""
        self.timezones.append(tz)
        return len(self.timezones) - 1

    def register_location(self, location: Location) -> int:
        """Add a location; a duplicate id keeps the first one and returns its index."""
        key = (location.id, location.src)
        existing = self.location_id_to_idx.get(key)
        if existing is not None:
            log.error("duplicate station %s", location.id)
            return existing

        idx = len(self.names)
        self.location_id_to_idx[key] = idx
        self.names.append(location.name)
        self.coordinates.append(location.pos)
        self.ids.append(location.id)
        self.src.append(location.src)
        self.types.append(location.type)
        self.location_timezones.append(location.timezone_idx)
        self.equivalences.append([])
        self.children.append([])
        self.preprocessing_footpaths_out.append([])
        self.preprocessing_footpaths_in.append([])
        self.transfer_time.append(location.transfer_time)
        self.parents.append(location.parent)
        return idx

    def get(self, idx: int) -> Location:
        """Assemble the location stored at ``idx``."""
        return Location(
            id=self.ids[idx],
            name=self.names[idx],
            pos=self.coordinates[idx],
            src=self.src[idx],
            type=self.types[idx],
            parent=self.parents[idx],
            timezone_idx=self.location_timezones[idx],
            transfer_time=self.transfer_time[idx],
            equivalences=tuple(self.equivalences[idx]),
            l=idx,
        )

    def get_by_id(self, location_id: str, src: int) -> Location:
        """Look a location up by its external id; raises KeyError if unknown."""
        return self.get(self.location_id_to_idx[(location_id, src)])

    def resolve_timezones(self) -> None:
        """Replace timezone names with zone objects."""
        self.timezones = [
            ZoneInfo(tz) if isinstance(tz, str) else tz for tz in self.timezones
        ]


@dataclass
class Timetable:
    """Static timetable. Bitfields are integers, bit ``i`` = day index ``i``."""

    date_range: Interval[date] = field(
        default_factory=lambda: Interval(date(1970, 1, 1), date(1970, 1, 1))
    )
    locations: Locations = field(default_factory=Locations)

    trip_id_to_idx: list[tuple[int, int]] = field(default_factory=list)
    trip_ids: list[list[int]] = field(default_factory=list)
    trip_id_strings: list[str] = field(default_factory=list)
    trip_id_src: list[int] = field(default_factory=list)
    trip_train_nr: list[int] = field(default_factory=list)
    trip_transport_ranges: list[list[tuple[int, Interval[int]]]] = field(
        default_factory=list
    )
    trip_stop_seq_numbers: list[list[int]] = field(default_factory=list)
    trip_debug: list[list[TripDebug]] = field(default_factory=list)
    source_file_names: list[str] = field(default_factory=list)
    trip_display_names: list[str] = field(default_factory=list)

    route_transport_ranges: list[Interval[int]] = field(default_factory=list)
    route_location_seq: list[list[int]] = field(default_factory=list)
    route_clasz: list[int] = field(default_factory=list)
    route_section_clasz: list[list[int]] = field(default_factory=list)
    location_routes: list[list[int]] = field(default_factory=list)
    route_stop_time_ranges: list[Interval[int]] = field(default_factory=list)
    route_stop_times: list[timedelta] = field(default_factory=list)

    transport_first_dep_offset: list[timedelta] = field(default_factory=list)
    initial_day_offset: list[int] = field(default_factory=list)
    transport_traffic_days: list[int] = field(default_factory=list)
    bitfields: list[int] = field(default_factory=list)
    transport_route: list[int] = field(default_factory=list)
    transport_to_trip_section: list[list[int]] = field(default_factory=list)
    merged_trips: list[list[int]] = field(default_factory=list)

    attributes: list[Any] = field(default_factory=list)
    attribute_combinations: list[list[int]] = field(default_factory=list)
    providers: list[Any] = field(default_factory=list)
    trip_direction_strings: list[str] = field(default_factory=list)
    trip_directions: list[TripDirection] = field(default_factory=list)
    trip_lines: list[str] = field(default_factory=list)

    transport_section_attributes: list[list[int]] = field(default_factory=list)
    transport_section_providers: list[list[int]] = field(default_factory=list)
    transport_section_directions: list[list[int]] = field(default_factory=list)
    transport_section_lines: list[list[int]] = field(default_factory=list)
    transport_section_route_colors: list[list[Any]] = field(default_factory=list)

    fwd_search_lb_graph: list[list[Footpath]] = field(default_factory=list)
    bwd_search_lb_graph: list[list[Footpath]] = field(default_factory=list)

    profiles: dict[str, int] = field(default_factory=dict)

    # --- registration -----------------------------------------------------

    def register_trip_id(
        self,
        trip_id: str,
        src: int,
        display_name: str,
        dbg: TripDebug,
        train_nr: int,
        seq_numbers: list[int],
    ) -> int:
        """Add a trip with one external id and return the trip index."""
        trip_idx = len(self.trip_ids)
        trip_id_idx = len(self.trip_id_strings)
        self.trip_id_strings.append(trip_id)
        self.trip_id_src.append(src)
        self.trip_id_to_idx.append((trip_id_idx, trip_idx))
        self.trip_display_names.append(display_name)
        self.trip_debug.append([dbg])
        self.trip_ids.append([trip_id_idx])
        self.trip_train_nr.append(train_nr)
        self.trip_stop_seq_numbers.append(list(seq_numbers))
        return trip_idx

    def register_bitfield(self, bitfield: int) -> int:
        if not 0 <= bitfield < (1 << MAX_DAYS):
            raise ValueError(f"bitfield does not fit in {MAX_DAYS} days")
        self.bitfields.append(bitfield)
        return len(self.bitfields) - 1

    def register_trip_direction_string(self, s: str) -> int:
        self.trip_direction_strings.append(str(s))
        return len(self.trip_direction_strings) - 1

    def register_route(self, stop_seq: list[int | Stop], clasz_sections: list[int]) -> int:
        """Start a route; its transports follow until ``finish_route``."""
        if len(stop_seq) < 2:
            raise ValueError("a route needs at least two stops")
        if not clasz_sections:
            raise ValueError("a route needs at least one clasz section")
        idx = len(self.route_location_seq)
        first = self.next_transport_idx()
        self.route_transport_ranges.append(Interval(first, first))
        self.route_location_seq.append(
            [s.value() if isinstance(s, Stop) else int(s) for s in stop_seq]
        )
        self.route_section_clasz.append(list(clasz_sections))
        self.route_clasz.append(clasz_sections[0])
        return idx

    def finish_route(self) -> None:
        """Close the transport range of the most recently registered route."""
        last = self.route_transport_ranges[-1]
        self.route_transport_ranges[-1] = Interval(last.start, self.next_transport_idx())

    def register_merged_trip(self, trip_ids: list[int]) -> int:
        self.merged_trips.append(list(trip_ids))
        return len(self.merged_trips) - 1

    def register_source_file(self, path: str | Path) -> int:
        self.source_file_names.append(str(path))
        return len(self.source_file_names) - 1

    def register_provider(self, provider: Any) -> int:
        self.providers.append(provider)
        return len(self.providers) - 1

    def add_transport(self, transport: NewTransport) -> None:
        n_directions = len(transport.section_directions)
        n_sections = len(self.route_location_seq[transport.route_idx]) - 1
        if n_directions not in (0, 1, n_sections):
            raise ValueError(
                f"{n_directions} section directions for a route with {n_sections} sections"
            )
        self.transport_first_dep_offset.append(transport.first_dep_offset)
        self.transport_traffic_days.append(transport.bitfield_idx)
        self.transport_route.append(transport.route_idx)
        self.transport_to_trip_section.append(list(transport.external_trip_ids))
        self.transport_section_attributes.append(list(transport.section_attributes))
        self.transport_section_providers.append(list(transport.section_providers))
        self.transport_section_directions.append(list(transport.section_directions))
        self.transport_section_lines.append(list(transport.section_lines))
        self.transport_section_route_colors.append(list(transport.route_colors))

    def next_transport_idx(self) -> int:
        return len(self.transport_traffic_days)

    # --- event times ------------------------------------------------------

    def _event_offset(self, route: int, stop_idx: int, ev_type: EventType) -> tuple[int, int]:
        n_transports = self.route_transport_ranges[route].size()
        begin = self.route_stop_time_ranges[route].start + n_transports * (
            stop_idx * 2 - (1 if ev_type is EventType.ARR else 0)
        )
        return begin, n_transports

    def event_times_at_stop(
        self, route: int, stop_idx: int, ev_type: EventType
    ) -> list[timedelta]:
        """Event times of all transports of ``route`` at one stop."""
        begin, n = self._event_offset(route, stop_idx, ev_type)
        return self.route_stop_times[begin : begin + n]

    def event_mam(self, transport_idx: int, stop_idx: int, ev_type: EventType) -> timedelta:
        """Event time relative to midnight of the transport's traffic day."""
        route = self.transport_route[transport_idx]
        begin, _ = self._event_offset(route, stop_idx, ev_type)
        in_route = transport_idx - self.route_transport_ranges[route].start
        return self.route_stop_times[begin + in_route]

    def event_time(self, transport: DayTransport, stop_idx: int, ev_type: EventType) -> datetime:
        """Absolute (UTC) event time of a transport on its day."""
        return (
            _midnight_utc(self.internal_interval_days().start)
            + timedelta(days=transport.day)
            + self.event_mam(transport.t_idx, stop_idx, ev_type)
        )

    # --- days -------------------------------------------------------------

    def day_idx(self, day: date) -> int:
        if isinstance(day, datetime):
            day = day.date()
        return (day - (self.date_range.start - TIMETABLE_OFFSET)).days

    def day_idx_mam(self, t: datetime) -> tuple[int, timedelta]:
        """Split a time into day index and minutes after midnight."""
        minutes = (t - self.internal_interval().start) // timedelta(minutes=1)
        q, r = divmod(abs(minutes), MINUTES_PER_DAY)
        if minutes < 0:
            q, r = -q, -r
        return q, timedelta(minutes=r)

    def to_unixtime(self, day: int, mam: timedelta) -> datetime:
        return _midnight_utc(self.internal_interval_days().start) + timedelta(days=day) + mam

    def n_locations(self) -> int:
        return len(self.locations.names)

    def n_routes(self) -> int:
        return len(self.route_location_seq)

    def external_interval(self) -> Interval[datetime]:
        return Interval(
            _midnight_utc(self.date_range.start), _midnight_utc(self.date_range.end)
        )

    def internal_interval_days(self) -> Interval[date]:
        return Interval(
            self.date_range.start - TIMETABLE_OFFSET,
            self.date_range.end + timedelta(days=1),
        )

    def internal_interval(self) -> Interval[datetime]:
        days = self.internal_interval_days()
        return Interval(_midnight_utc(days.start), _midnight_utc(days.end))

    # --- names ------------------------------------------------------------

    def trip_direction(self, idx: int) -> str:
        direction = self.trip_directions[idx]
        if direction.string_idx is not None:
            return self.trip_direction_strings[direction.string_idx]
        return self.locations.names[direction.location]

    def _first_trip(self, transport_idx: int) -> int:
        return self.merged_trips[self.transport_to_trip_section[transport_idx][0]][0]

    def transport_name(self, transport_idx: int) -> str:
        return self.trip_display_names[self._first_trip(transport_idx)]

    def dbg(self, transport_idx: int) -> Debug:
        info = self.trip_debug[self._first_trip(transport_idx)][0]
        return Debug(
            self.source_file_names[info.source_file_idx],
            info.line_number_from,
            info.line_number_to,
        )

    # --- persistence ------------------------------------------------------

    def write(self, path: str | Path) -> None:
        """Serialise the timetable to ``path`` with an integrity checksum."""
        payload = pickle.dumps(self, protocol=pickle.HIGHEST_PROTOCOL)
        with open(path, "wb") as f:
            f.write(_FILE_MAGIC)
            f.write(hashlib.sha256(payload).digest())
            f.write(payload)

    @classmethod
    def read(cls, path: str | Path) -> Timetable:
        """Load a timetable written by ``write``; raises ValueError if corrupt."""
        data = Path(path).read_bytes()
        if not data.startswith(_FILE_MAGIC):
            raise ValueError(f"{path}: not a timetable file")
        body = data[len(_FILE_MAGIC) :]
        digest, payload = body[:_DIGEST_SIZE], body[_DIGEST_SIZE:]
        if hashlib.sha256(payload).digest() != digest:
            raise ValueError(f"{path}: integrity check failed")
        tt = pickle.loads(payload)
        if not isinstance(tt, cls):
            raise ValueError(f"{path}: does not hold a timetable")
        return tt