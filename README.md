# transitrt

A public transport timetable model in pure Python, with no dependencies
outside the standard library. It holds a static timetable, a real-time
layer that GTFS-RT trip updates (in their JSON form) are applied to, and
the building blocks of a RAPTOR-style journey search.

## Installation

    pip install .

With the test dependencies:

    pip install ".[test]"

## Modules

- `transitrt.timetable`: `Timetable` and its `Locations`. A timetable is
  filled through `register_location`, `register_bitfield`, `register_route`,
  `add_transport`, `finish_route`, `register_trip_id`, `register_merged_trip`
  and the other `register_*` methods. It computes event times
  (`event_mam`, `event_time`, `event_times_at_stop`), converts between days
  and times (`day_idx`, `day_idx_mam`, `to_unixtime`) and reports its
  intervals. Traffic days are integers used as bitfields, where bit `i` is
  day index `i` of the internal interval. `Timetable.write(path)` and
  `Timetable.read(path)` store and load a timetable as a pickle with a
  SHA-256 integrity check. Only read files you trust.
- `transitrt.stop`: `Stop`, a location index plus in/out flags, packed into
  a 32-bit value by `Stop.value()` and unpacked by `Stop.from_value()`.
- `transitrt.special_stations`: `SpecialStation` (`START`, `END`,
  `VIA0`–`VIA6`) with `is_special`, `get_special_station` and
  `get_special_station_name`.
- `transitrt.run`: `Run`, one trip on one day. It refers to a scheduled
  transport, a real-time transport, or both.
- `transitrt.rt_timetable`: `RtTimetable` holds real-time stop times in
  minutes relative to a base day, updated traffic days, cancellations and an
  optional change callback. `create_rt_timetable(tt, base_day)` creates an
  empty real-time layer over a timetable.
- `transitrt.frun`: `FullRun` and `RunStop` give one view of a run's stops:
  names, tracks, ids, scheduled and real-time times, lines, directions,
  classes and providers. Iterating a `FullRun` skips cancelled stops.
  `format` renders the run as text. `format_timetable(tt)` dumps every trip
  and transport of a timetable.
- `transitrt.gtfsrt`: `gtfsrt_resolve_run` matches a trip descriptor to a
  run. `gtfsrt_update_msg` applies a feed message given as a dict.
  `gtfsrt_update_buf` parses the JSON text of a feed message first and
  applies it. Both propagate delays from stop to stop, handle skipped stops,
  stop reassignments and cancelled trips, and return `Statistics`.
  `parse_feed_json` reads a feed message from JSON and raises
  `FeedParseError` on bad input. `feed_to_json` writes one back. Keys may be
  camelCase or snake_case.
- `transitrt.routing.query`: `Query`, `Offset`, `Start`, `Direction`,
  `LocationMatchMode`, plus `for_each_meta` and `matches`.
- `transitrt.routing.clasz_mask`: `is_allowed`, `all_clasz_allowed`,
  `to_str`.
- `transitrt.routing.dijkstra`: `dijkstra(tt, query, lb_graph)` returns the
  lower-bound minutes from every location to the destination.
- `transitrt.routing.get_fastest_direct`: lower bounds for connections that
  need no transport.
- `transitrt.routing.start_times`: `get_starts` collects the start
  candidates of a search. `collect_destinations` marks the destination
  locations.
- `transitrt.routing.ontrip_train`: `generate_ontrip_train_query` fills a
  query for a traveller who is already on a train.
- `transitrt.routing.journey`: `Journey`, `Leg` and `RunEnterExit`, with
  text rendering.
- `transitrt.routing.raptor_state`: `RaptorState`, the per-round arrival
  times and marks.
- `transitrt.routing.reconstruct`: `reconstruct_journey` rebuilds the legs
  of a journey from a `RaptorState` and raises `ReconstructionError` when
  it cannot. `is_journey_start` is also defined here.

## Example

    from transitrt.rt_timetable import create_rt_timetable
    from transitrt.gtfsrt import parse_feed_json, gtfsrt_update_msg

    rtt = create_rt_timetable(tt, base_day)
    stats = gtfsrt_update_msg(tt, rtt, 0, "feed", parse_feed_json(json_text))
    print(stats.format())

Here `tt` is a populated `Timetable`, `base_day` is a `datetime.date`, and
`json_text` holds a GTFS-RT feed message as JSON.

## What it does not do

- It has no loaders for timetable data such as GTFS files. A `Timetable` is
  built through its `register_*` and `add_transport` methods, or read back
  with `Timetable.read`.
- It does not read or write the binary protobuf encoding of GTFS-RT. Feeds
  are handled in their JSON form only.
- It does not contain the RAPTOR search loop itself. It provides the query
  model, start times, lower bounds, the search state and journey
  reconstruction.
- It has no command-line interface and no server.