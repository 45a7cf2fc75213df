"""Durable-store synchronization models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SyncState(str, Enum):
    """Sync coordinator states."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class ResumeOutcome(str, Enum):
    """How a ledger was obtained at session start."""

    FRESH = "fresh"
    RESUMED = "resumed"
    LOAD_FAILED = "load_failed"
    INVALID_DOCUMENT = "invalid_document"


class SyncPayload(BaseModel):
    """Body sent to the durable store on each sync."""

    session_id: str = Field(..., description="Owning simulation session")
    record_id: str = Field(..., description="Encounter record identifier")
    events: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Events appended since the last acknowledged sync",
    )
    document: dict[str, Any] = Field(..., description="Full record snapshot")
    patient_info: dict[str, Any] = Field(default_factory=dict)
    current_state: dict[str, Any] = Field(default_factory=dict)
    events_count: int = Field(default=0, ge=0)


class StoredRecord(BaseModel):
    """What a durable store keeps per session."""

    session_id: str
    record_id: str
    document: dict[str, Any]
    patient_info: dict[str, Any] = Field(default_factory=dict)
    current_state: dict[str, Any] = Field(default_factory=dict)
    events_count: int = 0
    events: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Event log, one entry per event id in first-delivery order",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_payload(cls, payload: SyncPayload) -> StoredRecord:
        stored = cls(
            session_id=payload.session_id,
            record_id=payload.record_id,
            document=payload.document,
        )
        stored.apply(payload)
        return stored

    def apply(self, payload: SyncPayload) -> int:
        """Merge *payload* into this record.

        The document, patient info and state are replaced; events are added
        only if their id is not stored yet.

        Returns:
            Number of newly stored events.
        """
        known = {event.get("id") for event in self.events}
        added = 0
        for event in payload.events:
            if event.get("id") in known:
                continue
            self.events.append(event)
            known.add(event.get("id"))
            added += 1

        self.record_id = payload.record_id
        self.document = payload.document
        self.patient_info = payload.patient_info
        self.current_state = payload.current_state
        self.events_count = payload.events_count
        self.updated_at = datetime.now(timezone.utc)
        return added

    def events_for(self, verb: str | None = None) -> list[dict[str, Any]]:
        if verb is None:
            return list(self.events)
        return [event for event in self.events if event.get("verb") == verb]


class SyncResult(BaseModel):
    """Outcome of a single sync attempt."""

    success: bool
    reason: str | None = Field(default=None, description="Failure reason, if any")
    events_stored: int = Field(default=0, description="New event ids accepted by the store")
