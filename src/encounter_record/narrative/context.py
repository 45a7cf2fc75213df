"""Context projection: a compact briefing for language-model prompts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ..models.events import (
    AdministeredEvent,
    ChangedEvent,
    ElicitedEvent,
    ObtainedEvent,
    OrderedEvent,
    RecordEvent,
)
from ..constants import FindingSource, OrderStatus
from ..models.record import PatientInfo
from .common import join_sentences, obtained_answer, of_type, patient_label, sentence, truncate, vital_parts

MAX_HISTORY_ITEMS = 5
MAX_NORMAL_EXAM_ITEMS = 3
MAX_CHANGES = 3


def _patient_line(patient: PatientInfo) -> str:
    complaint = patient.chief_complaint.strip().rstrip(".") if patient.chief_complaint else ""
    complaint = f" presenting with {complaint}" if complaint else ""
    return f"Patient: {patient_label(patient)}{complaint}."


def _history_line(events: Sequence[RecordEvent]) -> str | None:
    history = of_type(events, ObtainedEvent)[:MAX_HISTORY_ITEMS]
    body = join_sentences([truncate(obtained_answer(event), 80) for event in history])
    return f"History: {body}" if body else None


def _findings(events: Sequence[RecordEvent], source: str) -> tuple[list[ElicitedEvent], list[ElicitedEvent]]:
    findings = [event for event in of_type(events, ElicitedEvent) if event.source == source]
    abnormal = [event for event in findings if event.abnormal]
    normal = [event for event in findings if not event.abnormal]
    return abnormal, normal


def _lab_name(event: ElicitedEvent) -> str:
    return event.test_name or event.finding.split(":")[0]


def to_context(
    events: Sequence[RecordEvent],
    patient: PatientInfo,
    vitals: Mapping[str, Any] | None,
    elapsed_minutes: int,
) -> str:
    """Compact clause-per-line briefing of the encounter so far.

    Every clause is optional; clauses with no source events are left out.
    Pass ``vitals=None`` to leave out the vitals clause.
    """
    parts: list[str | None] = [_patient_line(patient), _history_line(events)]

    abnormal_exam, normal_exam = _findings(events, FindingSource.EXAM)
    if abnormal_exam:
        parts.append(sentence("Abnormal exam", [e.finding for e in abnormal_exam], sep="; "))
    else:
        parts.append(sentence("Exam", [e.finding for e in normal_exam[:MAX_NORMAL_EXAM_ITEMS]], sep="; "))

    abnormal_labs, normal_labs = _findings(events, FindingSource.LAB)
    parts.append(sentence("Abnormal labs", [e.finding for e in abnormal_labs], sep="; "))
    parts.append(sentence("Normal labs", [_lab_name(e) for e in normal_labs]))

    pending = [e.item for e in of_type(events, OrderedEvent) if e.status == OrderStatus.PENDING]
    parts.append(sentence("Ordered", pending))

    given = [
        f"{e.item} {e.dose}" if e.dose else e.item
        for e in of_type(events, AdministeredEvent)
    ]
    parts.append(sentence("Given", given))

    changes = of_type(events, ChangedEvent)[-MAX_CHANGES:]
    parts.append(sentence("Changes", [f"{e.parameter} {e.from_value}→{e.to_value}" for e in changes]))

    if vitals:
        parts.append(sentence("Vitals", vital_parts(vitals, include_temp=False, include_pain=False)))

    parts.append(f"Encounter time: {elapsed_minutes} minutes.")

    return "\n".join(part for part in parts if part)
