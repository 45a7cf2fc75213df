"""Shared text helpers for narrative projections."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..models.events import ObtainedEvent
from ..models.record import PatientInfo

# A bare attribution ("patient", "family") rather than a recorded answer
_MIN_ANSWER_LENGTH = 10

ELLIPSIS = "..."


def truncate(text: str | None, max_len: int) -> str:
    """Cut *text* to at most *max_len* characters, ending in an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    if max_len <= len(ELLIPSIS):
        return ELLIPSIS[:max_len]
    return text[: max_len - len(ELLIPSIS)] + ELLIPSIS


def has_answer(event: ObtainedEvent) -> bool:
    """True when ``source`` holds a recorded answer, not an attribution."""
    return bool(event.source) and len(event.source) > _MIN_ANSWER_LENGTH


def obtained_answer(event: ObtainedEvent) -> str:
    """Text that best represents what an OBTAINED event captured."""
    return event.source if has_answer(event) else event.content


def gender_shorthand(gender: str | None) -> str:
    if not gender:
        return ""
    lowered = gender.strip().lower()
    if lowered in ("male", "m"):
        return "M"
    if lowered in ("female", "f"):
        return "F"
    return gender.strip()


def demographics(patient: PatientInfo) -> str:
    """``45yo M`` style shorthand; empty when nothing is known."""
    age = f"{patient.age}yo" if patient.age not in (None, "") else ""
    parts = [age, gender_shorthand(patient.gender)]
    return " ".join(part for part in parts if part)


def patient_label(patient: PatientInfo) -> str:
    demo = demographics(patient)
    name = patient.name or "Unknown"
    return f"{name} ({demo})" if demo else name


def _present(value: Any) -> bool:
    return value is not None and value != ""


def vital_parts(
    vitals: Mapping[str, Any],
    include_temp: bool = True,
    include_pain: bool = True,
) -> list[str]:
    """Human-readable fragments for the vitals that are set."""
    parts = []
    if _present(vitals.get("hr")):
        parts.append(f"HR {vitals['hr']}")
    if _present(vitals.get("bp_sys")) and _present(vitals.get("bp_dia")):
        parts.append(f"BP {vitals['bp_sys']}/{vitals['bp_dia']}")
    if _present(vitals.get("spo2")):
        parts.append(f"SpO2 {vitals['spo2']}%")
    if _present(vitals.get("rr")):
        parts.append(f"RR {vitals['rr']}")
    if include_temp and _present(vitals.get("temp")):
        parts.append(f"Temp {vitals['temp']}°C")
    if include_pain and _present(vitals.get("pain")):
        parts.append(f"Pain {vitals['pain']}/10")
    return parts


def of_type(events: Iterable[Any], cls: type) -> list[Any]:
    return [event for event in events if isinstance(event, cls)]


def join_sentences(items: Sequence[str]) -> str:
    """Join fragments into sentences, terminating each exactly once."""
    out = []
    for item in items:
        text = item.strip() if item else ""
        if not text:
            continue
        if text[-1] not in ".!?":
            text += "."
        out.append(text)
    return " ".join(out)


def sentence(label: str, items: Sequence[str], sep: str = ", ") -> str | None:
    """``"{label}: a, b."`` or None when there is nothing to say.

    Items already ending in sentence punctuation are not terminated again.
    """
    cleaned = [item.strip() for item in items if item and item.strip()]
    if not cleaned:
        return None
    body = sep.join(cleaned)
    if body[-1] not in ".!?":
        body += "."
    return f"{label}: {body}"
