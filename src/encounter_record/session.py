"""Encounter session: the entry point producers and consumers share.

An :class:`EncounterSession` owns exactly one ledger and its sync
coordinator for a session id. Opening resumes a persisted record when one
exists; closing stops the periodic sync after a final best-effort attempt.

Usage::

    async with await EncounterSession.open("42", case_id="7", patient_info=info) as enc:
        enc.obtained("hpi", "Chest pain 9/10, crushing")
        prompt_context = enc.narrative("context", allowed_verbs={"OBTAINED"})
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from .config import RecordConfig, get_config
from .constants import Verb
from .ledger import Clock, EventLedger
from .models.events import RecordEvent
from .models.record import CurrentState, EncounterRecord, PatientInfo, RecordSummary
from .models.sync import ResumeOutcome, SyncResult, SyncState
from .narrative import NarrativeStyle
from .protocols import RecordStore
from .sync import SyncCoordinator, create_store, resume_or_create

logger = logging.getLogger(__name__)

Listener = Callable[["EncounterSession"], None]


class SessionAlreadyOpenError(RuntimeError):
    """Raised when a second session is opened for a session id already in use."""


class SessionClosedError(RuntimeError):
    """Raised when recording into a session that has been closed."""


# Session ids with a live owner in this process
_open_sessions: dict[str, EncounterSession | None] = {}


def get_open_session(session_id: str) -> EncounterSession | None:
    """Return the live session for *session_id*, if any."""
    return _open_sessions.get(str(session_id))


class EncounterSession:
    """Single owner of one encounter's ledger and sync coordinator."""

    def __init__(
        self,
        ledger: EventLedger,
        coordinator: SyncCoordinator,
        resume_outcome: ResumeOutcome,
        config: RecordConfig,
    ):
        """Use :meth:`open` rather than constructing directly."""
        self._ledger = ledger
        self._coordinator = coordinator
        self._config = config
        self._listeners: list[Listener] = []
        self._closed = False
        self.resume_outcome = resume_outcome

    @classmethod
    async def open(
        cls,
        session_id: str,
        case_id: str | None = None,
        patient_info: PatientInfo | Mapping[str, Any] | None = None,
        *,
        store: RecordStore | None = None,
        config: RecordConfig | None = None,
        clock: Clock | None = None,
        start_sync: bool = True,
    ) -> EncounterSession:
        """Resume or create the record for *session_id* and start syncing.

        Args:
            session_id: Owning simulation session
            case_id: Scenario/case id used for a fresh record
            patient_info: Patient snapshot used for a fresh record
            store: Durable store. Defaults to the one selected by *config*.
            config: Settings. Defaults to :func:`get_config`.
            clock: Clock for the ledger (tests)
            start_sync: Start the periodic sync task

        Raises:
            SessionAlreadyOpenError: If *session_id* already has a live owner.
        """
        key = str(session_id)
        if key in _open_sessions:
            raise SessionAlreadyOpenError(f"Encounter session {key} is already open")
        # Reserve before awaiting so a concurrent open() cannot slip in
        _open_sessions[key] = None

        try:
            config = config or get_config()
            store = store or create_store(config)
            resumed = await resume_or_create(store, key, case_id, patient_info, clock=clock)
        except BaseException:
            _open_sessions.pop(key, None)
            raise

        coordinator = SyncCoordinator(resumed.ledger, store, interval=config.sync_interval)
        session = cls(resumed.ledger, coordinator, resumed.outcome, config)
        _open_sessions[key] = session

        if start_sync:
            coordinator.start()
        logger.info("Opened encounter session %s (%s)", key, resumed.outcome.value)
        return session

    async def close(self) -> SyncResult | None:
        """Stop syncing (after a final attempt if configured) and release the id."""
        if self._closed:
            return None
        self._closed = True
        try:
            result = await self._coordinator.stop(final_sync=self._config.final_sync_on_close)
        finally:
            if _open_sessions.get(self.session_id) is self:
                del _open_sessions[self.session_id]
        logger.info("Closed encounter session %s", self.session_id)
        return result

    async def __aenter__(self) -> EncounterSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Change listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Encounter session listener failed")

    def _write(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if self._closed:
            raise SessionClosedError(f"Encounter session {self.session_id} is closed")
        result = operation(*args, **kwargs)
        self._notify()
        return result

    # ------------------------------------------------------------------
    # Recording operations
    # ------------------------------------------------------------------

    def obtained(self, category: str, content: str, source: str | None = "patient") -> RecordEvent:
        return self._write(self._ledger.obtained, category, content, source)

    def examined(self, region: str, technique: str, detail: str | None = None) -> RecordEvent:
        return self._write(self._ledger.examined, region, technique, detail)

    def elicited(self, source: str, finding: str, abnormal: bool, **options: Any) -> RecordEvent:
        return self._write(self._ledger.elicited, source, finding, abnormal, **options)

    def noted(self, source: str, item: str, trigger: str | None = None, action: str | None = None) -> RecordEvent:
        return self._write(self._ledger.noted, source, item, trigger, action)

    def ordered(
        self,
        category: str,
        item: str,
        details: Mapping[str, Any] | None = None,
        status: str = "pending",
    ) -> RecordEvent:
        return self._write(self._ledger.ordered, category, item, details, status)

    def administered(
        self, category: str, item: str, dose: str, route: str, response: str | None = None
    ) -> RecordEvent:
        return self._write(self._ledger.administered, category, item, dose, route, response)

    def changed(
        self,
        category: str,
        parameter: str,
        from_value: Any,
        to_value: Any,
        trigger: str | None = None,
        unit: str | None = None,
    ) -> RecordEvent:
        return self._write(self._ledger.changed, category, parameter, from_value, to_value, trigger, unit)

    def expressed(
        self, type: str, content: str, context: str | None = None, addressed: bool = False
    ) -> RecordEvent:
        return self._write(self._ledger.expressed, type, content, context, addressed)

    def update_vitals(self, vitals: Mapping[str, Any]) -> None:
        self._write(self._ledger.update_vitals, vitals)

    def set_initial_vitals(self, vitals: Mapping[str, Any]) -> RecordEvent:
        return self._write(self._ledger.set_initial_vitals, vitals)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> EventLedger:
        return self._ledger

    @property
    def session_id(self) -> str:
        return str(self._ledger.session_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def get_record(self) -> EncounterRecord:
        return self._ledger.get_record()

    def get_events(self, verb: Verb | str | None = None) -> list[RecordEvent]:
        return self._ledger.get_events(verb)

    def get_current_state(self) -> CurrentState:
        return self._ledger.get_current_state()

    def get_summary(self) -> RecordSummary:
        return self._ledger.get_summary()

    def get_event_count(self) -> int:
        return self._ledger.get_event_count()

    def to_json(self) -> str:
        return self._ledger.to_json()

    def narrative(
        self,
        style: NarrativeStyle | str = NarrativeStyle.CONTEXT,
        allowed_verbs: Iterable[Verb | str] | None = None,
    ) -> str:
        """Render the log, restricted to *allowed_verbs* when given."""
        if allowed_verbs is None:
            return self._ledger.to_narrative(style)
        return self._ledger.filtered_narrative(style, allowed_verbs)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def force_sync(self) -> SyncResult:
        """Sync now; the result tells the caller whether it succeeded."""
        result = await self._coordinator.force_sync()
        self._notify()
        return result

    @property
    def sync_state(self) -> SyncState:
        return self._coordinator.state

    @property
    def last_sync_time(self) -> datetime | None:
        return self._coordinator.last_sync_at

    @property
    def sync_error(self) -> str | None:
        return self._coordinator.last_error
