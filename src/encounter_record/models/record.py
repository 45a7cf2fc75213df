"""Encounter record data models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import VITAL_KEYS
from .events import RecordEvent

VitalValue = int | float | str | None


def empty_vitals() -> dict[str, VitalValue]:
    """Return a vitals mapping with every known key unset."""
    return {key: None for key in VITAL_KEYS}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatientInfo(BaseModel):
    """Demographic snapshot captured when the record is created."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="Unknown Patient")
    age: int | str | None = None
    gender: str | None = None
    mrn: str | None = Field(default=None, description="Medical record number")
    chief_complaint: str | None = None


class CurrentState(BaseModel):
    """State derived from the event log."""

    vitals: dict[str, VitalValue] = Field(default_factory=empty_vitals)
    elapsed_minutes: int = Field(default=0, ge=0)


class EncounterRecord(BaseModel):
    """Full persisted document for one simulation session."""

    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(..., description="Opaque record identifier")
    session_id: str | None = Field(..., description="Owning simulation session")
    case_id: str | None = Field(default=None, description="Scenario/case reference")
    started_at: datetime = Field(default_factory=utcnow)
    last_updated_at: datetime = Field(default_factory=utcnow)
    patient: PatientInfo = Field(default_factory=PatientInfo)
    events: list[RecordEvent] = Field(default_factory=list)
    current_state: CurrentState = Field(default_factory=CurrentState)

    @field_validator("started_at", "last_updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Documents written by other backends may carry naive timestamps
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class RecordSummary(BaseModel):
    """Headline statistics for an encounter record."""

    record_id: str
    session_id: str | None
    patient_name: str
    elapsed_minutes: int
    total_events: int
    events_by_verb: dict[str, int] = Field(default_factory=dict)
    current_vitals: dict[str, Any] = Field(default_factory=dict)
