"""Narrative synthesis entry points, including capability-filtered views."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from ..constants import ALL_VERBS, Verb
from ..models.events import RecordEvent
from ..models.record import PatientInfo
from .context import to_context
from .summary import to_summary
from .timeline import to_timeline

logger = logging.getLogger(__name__)


class NarrativeStyle(str, Enum):
    """Available text projections."""

    TIMELINE = "timeline"
    SUMMARY = "summary"
    CONTEXT = "context"


def normalize_verbs(verbs: Iterable[str | Verb]) -> frozenset[str]:
    """Coerce verb names to their canonical string values.

    Raises:
        ValueError: If any name is not one of the eight verbs.
    """
    return frozenset(Verb(str(getattr(verb, "value", verb)).upper()).value for verb in verbs)


def filter_events(
    events: Sequence[RecordEvent], allowed_verbs: Iterable[str | Verb]
) -> list[RecordEvent]:
    """Keep only events whose verb is in *allowed_verbs*, preserving order."""
    allowed = normalize_verbs(allowed_verbs)
    return [event for event in events if event.verb in allowed]


def render_narrative(
    style: NarrativeStyle | str,
    events: Sequence[RecordEvent],
    patient: PatientInfo,
    vitals: Mapping[str, Any] | None,
    elapsed_minutes: int,
    allowed_verbs: Iterable[str | Verb] | None = None,
) -> str:
    """Render *events* in the requested style.

    When *allowed_verbs* is given the narrative is built as if the log held
    only events with those verbs. Current vitals are a product of CHANGED
    events, so they are hidden whenever CHANGED is not allowed.

    Raises:
        ValueError: On an unknown style or verb name.
    """
    style = NarrativeStyle(style)

    if allowed_verbs is not None:
        allowed = normalize_verbs(allowed_verbs)
        events = filter_events(events, allowed)
        if Verb.CHANGED.value not in allowed:
            vitals = None

    if style is NarrativeStyle.TIMELINE:
        return to_timeline(events)
    if style is NarrativeStyle.SUMMARY:
        return to_summary(events, patient, vitals)
    return to_context(events, patient, vitals, elapsed_minutes)


def allowed_verbs_from_access(access: Mapping[str, bool] | str | None) -> frozenset[str]:
    """Turn a persona memory-access setting into an explicit verb allow-list.

    ``access`` is a ``{verb: allowed}`` mapping or its JSON text. ``None`` means
    the persona has no restriction configured and sees every verb. Anything
    that cannot be understood grants nothing.
    """
    if access is None:
        return frozenset(verb.value for verb in ALL_VERBS)

    if isinstance(access, str):
        try:
            access = json.loads(access)
        except json.JSONDecodeError:
            logger.warning("Unparseable memory access setting, granting no verbs")
            return frozenset()

    if not isinstance(access, Mapping):
        logger.warning("Memory access setting is not a mapping, granting no verbs")
        return frozenset()

    allowed = set()
    for name, granted in access.items():
        if granted is not True:
            continue
        try:
            allowed.add(Verb(str(name).upper()).value)
        except ValueError:
            logger.warning("Ignoring unknown verb %r in memory access setting", name)
    return frozenset(allowed)
