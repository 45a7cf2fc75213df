"""Timeline projection: one line per event in log order."""

from __future__ import annotations

from collections.abc import Sequence

from ..models.events import (
    AdministeredEvent,
    ChangedEvent,
    ElicitedEvent,
    ExaminedEvent,
    ExpressedEvent,
    NotedEvent,
    ObtainedEvent,
    OrderedEvent,
    RecordEvent,
)
from .common import obtained_answer, truncate

EMPTY_TIMELINE = "No events recorded yet."


def event_to_text(event: RecordEvent) -> str:
    """Render a single event as a one-line description."""
    if isinstance(event, ObtainedEvent):
        return f"Asked about {event.category}. {truncate(obtained_answer(event), 100)}"
    if isinstance(event, ExaminedEvent):
        detail = f" {event.detail}" if event.detail else ""
        return f"Examined {event.region} ({event.technique}).{detail}"
    if isinstance(event, ElicitedEvent):
        prefix = "ABNORMAL: " if event.abnormal else ""
        return f"{prefix}{event.finding}"
    if isinstance(event, NotedEvent):
        return f"Noted {event.item} - {event.action or 'acknowledged'}"
    if isinstance(event, OrderedEvent):
        urgency = (event.details or {}).get("urgency")
        return f"Ordered {event.item}{f' ({urgency})' if urgency else ''}"
    if isinstance(event, AdministeredEvent):
        dose = f" {event.dose}" if event.dose else ""
        route = f" {event.route}" if event.route else ""
        return f"Administered {event.item}{dose}{route}"
    if isinstance(event, ChangedEvent):
        unit = f" {event.unit}" if event.unit else ""
        return f"{event.parameter} changed: {event.from_value} → {event.to_value}{unit}"
    if isinstance(event, ExpressedEvent):
        return f'Patient {event.type}: "{truncate(event.content, 80)}"'
    raise TypeError(f"Unknown event type: {type(event).__name__}")


def to_timeline(events: Sequence[RecordEvent]) -> str:
    """Chronological ``"{time} min - ..."`` listing of *events*."""
    if not events:
        return EMPTY_TIMELINE
    return "\n".join(f"{event.time} min - {event_to_text(event)}" for event in events)
