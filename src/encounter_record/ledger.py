"""Append-only event ledger for one simulation encounter.

The ledger is the single writer of the event log and the only source of
derived current state (vitals, elapsed minutes). Every recording operation
appends exactly one frozen event. All work is in-memory; persistence is
handled separately by :mod:`encounter_record.sync`.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from .constants import Verb
from .models.events import EVENT_ADAPTER, EVENT_LIST_ADAPTER, RecordEvent, determine_direction
from .models.record import (
    CurrentState,
    EncounterRecord,
    PatientInfo,
    RecordSummary,
    VitalValue,
    empty_vitals,
    utcnow,
)
from .narrative import NarrativeStyle, render_narrative
from .state import apply_event, elapsed_minutes, merge_vitals

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class EventLedger:
    """Running record of every clinically relevant event in an encounter."""

    def __init__(
        self,
        session_id: str | None,
        case_id: str | None = None,
        patient_info: PatientInfo | Mapping[str, Any] | None = None,
        *,
        record_id: str | None = None,
        started_at: datetime | None = None,
        clock: Clock | None = None,
    ):
        """Create an empty ledger.

        Args:
            session_id: Owning simulation session
            case_id: Scenario/case the session runs
            patient_info: Demographic snapshot; missing fields take defaults
            record_id: Existing record id (resume only). Generated if omitted.
            started_at: Existing start time (resume only). Defaults to now.
            clock: Callable returning the current aware datetime
        """
        self._clock = clock or utcnow
        self._lock = threading.RLock()

        if isinstance(patient_info, PatientInfo):
            patient = patient_info
        else:
            patient = PatientInfo.model_validate(
                {k: v for k, v in (patient_info or {}).items() if v is not None}
            )

        now = self._clock()
        self._record_id = record_id or str(uuid.uuid4())
        self._session_id = session_id
        self._case_id = case_id
        self._started_at = started_at or now
        self._last_updated_at = now
        self._patient = patient
        self._events: list[RecordEvent] = []
        self._vitals: dict[str, VitalValue] = empty_vitals()
        self._pending: list[RecordEvent] = []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def elapsed_minutes(self) -> int:
        """Whole minutes since the encounter started."""
        return elapsed_minutes(self._started_at, self._clock())

    def _append(self, verb: Verb, **payload: Any) -> RecordEvent:
        """Build, store and enqueue a single event atomically."""
        with self._lock:
            event = EVENT_ADAPTER.validate_python(
                {
                    "id": str(uuid.uuid4()),
                    "verb": verb.value,
                    "time": self.elapsed_minutes(),
                    **payload,
                }
            )
            self._events.append(event)
            self._last_updated_at = self._clock()
            self._vitals = apply_event(self._vitals, event)
            self._pending.append(event)

        logger.debug("Recorded %s event %s at %d min", verb.value, event.id, event.time)
        return event

    # ------------------------------------------------------------------
    # Recording operations
    # ------------------------------------------------------------------

    def obtained(self, category: str, content: str, source: str | None = "patient") -> RecordEvent:
        """OBTAINED: history or information gathered from an interview.

        Args:
            category: hpi, pmh, medication, allergy, family_hx, social_hx, ros
            content: What was asked or obtained
            source: Who answered, or the answer text
        """
        return self._append(Verb.OBTAINED, category=category, content=content, source=source)

    def examined(self, region: str, technique: str, detail: str | None = None) -> RecordEvent:
        """EXAMINED: a physical exam maneuver was performed (no finding yet)."""
        return self._append(Verb.EXAMINED, region=region, technique=technique, detail=detail)

    def elicited(
        self,
        source: str,
        finding: str,
        abnormal: bool,
        *,
        category: str | None = None,
        test_name: str | None = None,
        value: str | None = None,
        unit: str | None = None,
        reference_range: str | None = None,
        significance: str | None = None,
    ) -> RecordEvent:
        """ELICITED: a concrete finding or result surfaced.

        Args:
            source: exam, lab, imaging or procedure
            finding: What was found
            abnormal: Whether the finding is abnormal
            category: Body region or test category
            test_name: Name of the lab/imaging test
            value: Measured value
            unit: Unit of measurement
            reference_range: Normal range
            significance: Clinical interpretation
        """
        return self._append(
            Verb.ELICITED,
            source=source,
            finding=finding,
            abnormal=abnormal,
            category=category,
            test_name=test_name,
            value=None if value is None else str(value),
            unit=unit,
            reference_range=reference_range,
            significance=significance,
        )

    def noted(
        self,
        source: str,
        item: str,
        trigger: str | None = None,
        action: str | None = None,
    ) -> RecordEvent:
        """NOTED: something was observed or acknowledged."""
        return self._append(Verb.NOTED, source=source, item=item, trigger=trigger, action=action)

    def ordered(
        self,
        category: str,
        item: str,
        details: Mapping[str, Any] | None = None,
        status: str = "pending",
    ) -> RecordEvent:
        """ORDERED: a test, treatment or consult was requested."""
        return self._append(
            Verb.ORDERED,
            category=category,
            item=item,
            details=dict(details) if details is not None else None,
            status=status,
        )

    def administered(
        self,
        category: str,
        item: str,
        dose: str,
        route: str,
        response: str | None = None,
    ) -> RecordEvent:
        """ADMINISTERED: a treatment was actually given."""
        return self._append(
            Verb.ADMINISTERED,
            category=category,
            item=item,
            dose=dose,
            route=route,
            response=response,
        )

    def changed(
        self,
        category: str,
        parameter: str,
        from_value: VitalValue,
        to_value: VitalValue,
        trigger: str | None = None,
        unit: str | None = None,
    ) -> RecordEvent:
        """CHANGED: a tracked value transitioned.

        Vital changes (``category="vital"`` with a known parameter) also update
        current vitals. Other changes are recorded without touching state.
        """
        return self._append(
            Verb.CHANGED,
            category=category,
            parameter=parameter,
            **{"from": str(from_value), "to": str(to_value)},
            trigger=trigger,
            unit=unit,
            direction=determine_direction(from_value, to_value),
        )

    def expressed(
        self,
        type: str,
        content: str,
        context: str | None = None,
        addressed: bool = False,
    ) -> RecordEvent:
        """EXPRESSED: the patient communicated something unprompted."""
        return self._append(
            Verb.EXPRESSED,
            type=type,
            content=content,
            context=context,
            addressed=addressed,
        )

    # ------------------------------------------------------------------
    # State operations
    # ------------------------------------------------------------------

    def update_vitals(self, vitals: Mapping[str, Any]) -> None:
        """Merge *vitals* into current state without recording an event."""
        with self._lock:
            self._vitals, ignored = merge_vitals(self._vitals, vitals)
            self._last_updated_at = self._clock()
        if ignored:
            logger.debug("Ignoring unknown vital keys: %s", ", ".join(sorted(ignored)))

    def set_initial_vitals(self, vitals: Mapping[str, Any]) -> RecordEvent:
        """Set baseline vitals and mark the baseline in the log."""
        with self._lock:
            self.update_vitals(vitals)
            return self.changed(
                "vital",
                "initial",
                "N/A",
                json.dumps(dict(vitals), default=str, separators=(",", ":")),
                trigger="session_start",
            )

    def load_events(self, events: Iterable[RecordEvent | Mapping[str, Any]] | None) -> None:
        """Replace the whole event log (session resume only).

        Current vitals and the pending-sync buffer are left alone.

        Raises:
            pydantic.ValidationError: If any event does not match its verb schema.
        """
        loaded = EVENT_LIST_ADAPTER.validate_python(
            [e.model_dump(by_alias=True) if not isinstance(e, Mapping) else e for e in events or []]
        )
        with self._lock:
            self._events = loaded
            self._last_updated_at = self._clock()
        logger.debug("Loaded %d events into record %s", len(loaded), self._record_id)

    def restore_state(self, state: CurrentState | Mapping[str, Any]) -> None:
        """Adopt persisted vitals verbatim (session resume only)."""
        if not isinstance(state, CurrentState):
            state = CurrentState.model_validate(state)
        with self._lock:
            self._vitals = {**empty_vitals(), **state.vitals}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def record_id(self) -> str:
        return self._record_id

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def case_id(self) -> str | None:
        return self._case_id

    def get_record(self) -> EncounterRecord:
        """Snapshot of the full record, safe to hold while the ledger changes."""
        with self._lock:
            return EncounterRecord(
                record_id=self._record_id,
                session_id=self._session_id,
                case_id=self._case_id,
                started_at=self._started_at,
                last_updated_at=self._last_updated_at,
                patient=self._patient,
                events=list(self._events),
                current_state=self.get_current_state(),
            )

    def get_events(self, verb: Verb | str | None = None) -> list[RecordEvent]:
        """Events in log order, optionally only those with *verb*."""
        with self._lock:
            events = list(self._events)
        if verb is None:
            return events
        return self.get_events_by_verb(verb, events)

    def get_events_by_verb(
        self, verb: Verb | str, events: list[RecordEvent] | None = None
    ) -> list[RecordEvent]:
        """Events with *verb*; an unknown verb name matches nothing."""
        try:
            wanted = Verb(str(getattr(verb, "value", verb)).upper()).value
        except ValueError:
            logger.debug("No events for unknown verb %r", verb)
            return []
        if events is None:
            with self._lock:
                events = list(self._events)
        return [e for e in events if e.verb == wanted]

    def get_current_state(self) -> CurrentState:
        with self._lock:
            return CurrentState(vitals=dict(self._vitals), elapsed_minutes=self.elapsed_minutes())

    def get_patient_info(self) -> PatientInfo:
        return self._patient

    def get_event_count(self) -> int:
        return len(self._events)

    def get_pending_sync(self) -> list[RecordEvent]:
        """Events appended since the last acknowledged sync."""
        with self._lock:
            return list(self._pending)

    def clear_pending_sync(self, event_ids: Iterable[str] | None = None) -> int:
        """Drop acknowledged events from the pending-sync buffer.

        With ``event_ids=None`` the whole buffer is cleared; otherwise only the
        listed ids are removed, so events appended meanwhile stay queued.

        Returns:
            Number of events removed.
        """
        with self._lock:
            before = len(self._pending)
            if event_ids is None:
                self._pending = []
            else:
                acked = set(event_ids)
                self._pending = [e for e in self._pending if e.id not in acked]
            return before - len(self._pending)

    def get_summary(self) -> RecordSummary:
        """Headline statistics: totals, counts per verb, current vitals."""
        with self._lock:
            counts = Counter(e.verb for e in self._events)
            return RecordSummary(
                record_id=self._record_id,
                session_id=self._session_id,
                patient_name=self._patient.name,
                elapsed_minutes=self.elapsed_minutes(),
                total_events=len(self._events),
                events_by_verb=dict(counts),
                current_vitals=dict(self._vitals),
            )

    def to_json(self) -> str:
        """Complete, self-describing JSON export of the record."""
        return self.get_record().model_dump_json(indent=2, by_alias=True)

    # ------------------------------------------------------------------
    # Narratives
    # ------------------------------------------------------------------

    def to_narrative(self, style: NarrativeStyle | str = NarrativeStyle.CONTEXT) -> str:
        """Plain-language rendering of the whole log."""
        return self._narrate(style, None)

    def filtered_narrative(
        self,
        style: NarrativeStyle | str,
        allowed_verbs: Iterable[Verb | str],
    ) -> str:
        """Rendering restricted to events whose verb is in *allowed_verbs*."""
        return self._narrate(style, allowed_verbs)

    def _narrate(self, style, allowed_verbs) -> str:
        with self._lock:
            events = list(self._events)
            vitals = dict(self._vitals)
        return render_narrative(
            style,
            events,
            self._patient,
            vitals,
            self.elapsed_minutes(),
            allowed_verbs=allowed_verbs,
        )

    def __repr__(self) -> str:
        return (
            f"EventLedger(record_id={self._record_id!r}, "
            f"session_id={self._session_id!r}, events={len(self._events)})"
        )
