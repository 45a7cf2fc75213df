"""Data models for encounter records."""

from .events import (
    EVENT_ADAPTER,
    EVENT_LIST_ADAPTER,
    AdministeredEvent,
    BaseRecordEvent,
    ChangedEvent,
    ElicitedEvent,
    ExaminedEvent,
    ExpressedEvent,
    NotedEvent,
    ObtainedEvent,
    OrderedEvent,
    RecordEvent,
    determine_direction,
)
from .record import (
    CurrentState,
    EncounterRecord,
    PatientInfo,
    RecordSummary,
    VitalValue,
    empty_vitals,
)
from .sync import ResumeOutcome, StoredRecord, SyncPayload, SyncResult, SyncState

__all__ = [
    # Events
    "EVENT_ADAPTER",
    "EVENT_LIST_ADAPTER",
    "AdministeredEvent",
    "BaseRecordEvent",
    "ChangedEvent",
    "ElicitedEvent",
    "ExaminedEvent",
    "ExpressedEvent",
    "NotedEvent",
    "ObtainedEvent",
    "OrderedEvent",
    "RecordEvent",
    "determine_direction",
    # Record
    "CurrentState",
    "EncounterRecord",
    "PatientInfo",
    "RecordSummary",
    "VitalValue",
    "empty_vitals",
    # Sync
    "ResumeOutcome",
    "StoredRecord",
    "SyncPayload",
    "SyncResult",
    "SyncState",
]
