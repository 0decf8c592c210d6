"""Transit timetable model with GTFS-RT (JSON) real-time updates and routing helpers."""

__version__ = "0.1.0"