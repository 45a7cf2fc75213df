"""Summary projection: SOAP-like sections grouped by kind of event."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ..models.events import (
    AdministeredEvent,
    ChangedEvent,
    ElicitedEvent,
    ExaminedEvent,
    NotedEvent,
    ObtainedEvent,
    OrderedEvent,
    RecordEvent,
)
from ..constants import FindingSource
from ..models.record import PatientInfo
from .common import demographics, has_answer, of_type, truncate, vital_parts


def _tag(finding: ElicitedEvent) -> str:
    return f"[ABNORMAL] {finding.finding}" if finding.abnormal else finding.finding


def _header(patient: PatientInfo) -> list[str]:
    lines = []
    demo = demographics(patient)
    if patient.name or demo:
        lines.append(f"PATIENT: {patient.name or 'Unknown'}{f' ({demo})' if demo else ''}")
    if patient.chief_complaint:
        lines.append(f"CHIEF COMPLAINT: {patient.chief_complaint}")
    return lines


def _history(events: Sequence[RecordEvent]) -> list[str]:
    lines = []
    for event in of_type(events, ObtainedEvent):
        source = f": {truncate(event.source, 100)}" if has_answer(event) else ""
        lines.append(f"- {event.content}{source}")
    return lines


def _examination(events: Sequence[RecordEvent]) -> list[str]:
    lines = []
    for event in of_type(events, ExaminedEvent):
        detail = f" - {event.detail}" if event.detail else ""
        lines.append(f"- {event.region}: {event.technique}{detail}")
    for event in of_type(events, ElicitedEvent):
        if event.source == FindingSource.EXAM:
            lines.append(f"- {_tag(event)}")
    return lines


def _labs(events: Sequence[RecordEvent]) -> list[str]:
    lines = []
    orders = of_type(events, OrderedEvent)
    if orders:
        lines.append(f"Ordered: {', '.join(order.item for order in orders)}")
    for event in of_type(events, ElicitedEvent):
        if event.source == FindingSource.LAB:
            lines.append(_tag(event))
    return lines


def _interventions(events: Sequence[RecordEvent]) -> list[str]:
    """Administrations, then the tracked changes; empty if nothing was given."""
    given = of_type(events, AdministeredEvent)
    if not given:
        return []
    lines = []
    for event in given:
        parts = [event.item, event.dose, event.route]
        lines.append(f"- Gave {' '.join(part for part in parts if part)}")
    for event in of_type(events, ChangedEvent):
        unit = f" {event.unit}" if event.unit else ""
        lines.append(f"- {event.parameter}: {event.from_value} → {event.to_value}{unit}")
    return lines


def _notes(events: Sequence[RecordEvent]) -> list[str]:
    return [f"- {event.item}: {event.action or 'noted'}" for event in of_type(events, NotedEvent)]


def to_summary(
    events: Sequence[RecordEvent],
    patient: PatientInfo,
    vitals: Mapping[str, Any] | None,
) -> str:
    """Sectioned clinical summary of *events*.

    Sections without content are omitted. Pass ``vitals=None`` to leave out
    the vitals line entirely.
    """
    sections = _header(patient)

    for title, lines in (
        ("HISTORY", _history(events)),
        ("EXAMINATION", _examination(events)),
        ("LABS/STUDIES", _labs(events)),
        ("INTERVENTIONS", _interventions(events)),
        ("ALERTS/NOTES", _notes(events)),
    ):
        if lines:
            sections.append(f"\n{title}:\n" + "\n".join(lines))

    parts = vital_parts(vitals) if vitals else []
    if parts:
        sections.append(f"\nCURRENT VITALS: {', '.join(parts)}")

    return "\n".join(sections)
