"""Core utilities for FeedGuard."""

from .dates import (
    DATE_FORMAT,
    Clock,
    ManualClock,
    SystemClock,
    as_utc,
    parse_iso,
    to_iso,
    today,
)
from .io import load_json, save_json

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "ManualClock",
    # I/O
    "load_json",
    "save_json",
    # Dates
    "today",
    "as_utc",
    "to_iso",
    "parse_iso",
    "DATE_FORMAT",
]
