"""Pure reducers for derived encounter state."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .constants import VITAL_CATEGORY, VITAL_KEYS
from .models.events import ChangedEvent
from .models.record import VitalValue


def is_vital_change(event: Any) -> bool:
    """True when *event* is a CHANGED event addressing a known vital key."""
    return (
        isinstance(event, ChangedEvent)
        and event.category == VITAL_CATEGORY
        and event.parameter in VITAL_KEYS
    )


def apply_event(
    vitals: Mapping[str, VitalValue], event: Any
) -> dict[str, VitalValue]:
    """Return the vitals mapping after *event*.

    Only vital CHANGED events write through; every other event leaves the
    mapping as it was. The input mapping is never modified.
    """
    updated = dict(vitals)
    if is_vital_change(event):
        updated[event.parameter] = event.to_value
    return updated


def merge_vitals(
    vitals: Mapping[str, VitalValue], partial: Mapping[str, Any]
) -> tuple[dict[str, VitalValue], list[str]]:
    """Merge recognized keys of *partial* into *vitals*.

    Returns the new mapping and the list of ignored (unknown) keys.
    """
    updated = dict(vitals)
    ignored = []
    for key, value in partial.items():
        if key in VITAL_KEYS:
            updated[key] = value
        else:
            ignored.append(key)
    return updated, ignored


def elapsed_minutes(started_at: datetime, now: datetime) -> int:
    """Whole minutes between *started_at* and *now*, never negative."""
    seconds = (now - started_at).total_seconds()
    return max(0, int(seconds // 60))
