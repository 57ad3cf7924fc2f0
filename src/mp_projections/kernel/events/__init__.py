"""Kernel – Event envelope and Command."""

from mp_projections.kernel.events.command import Command
from mp_projections.kernel.events.event import (
    NIL_ID,
    Event,
    events_from_json,
    events_to_json,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    "NIL_ID",
    "Command",
    "Event",
    "events_from_json",
    "events_to_json",
    "format_timestamp",
    "parse_timestamp",
]
