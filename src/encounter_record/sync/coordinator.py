"""Durable, resumable synchronization of an event ledger.

The coordinator periodically drains the ledger's pending-sync buffer into a
:class:`~encounter_record.protocols.RecordStore`. Delivery is at-least-once:
pending events are only dropped after the store acknowledges them, and a
failed attempt leaves them queued for the next tick. Sync errors never reach
ledger callers; they are logged and exposed as coordinator state.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ..ledger import Clock, EventLedger
from ..models.record import EncounterRecord, PatientInfo
from ..models.sync import ResumeOutcome, SyncPayload, SyncResult, SyncState
from ..protocols import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 60.0

# Keys a persisted document must carry to be resumed; model defaults do not count
RESUME_REQUIRED_KEYS = ("record_id", "session_id", "started_at", "patient", "events", "current_state")


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def build_payload(ledger: EventLedger) -> tuple[SyncPayload, list[str]]:
    """Snapshot *ledger* for one sync attempt.

    Returns:
        The payload and the ids of the pending events it carries.
    """
    pending = ledger.get_pending_sync()
    record = ledger.get_record()
    payload = SyncPayload(
        session_id=str(record.session_id),
        record_id=record.record_id,
        events=[event.model_dump(mode="json", by_alias=True) for event in pending],
        document=record.model_dump(mode="json", by_alias=True),
        patient_info=record.patient.model_dump(mode="json"),
        current_state=record.current_state.model_dump(mode="json"),
        events_count=len(record.events),
    )
    return payload, [event.id for event in pending]


class SyncCoordinator:
    """Periodic and on-demand sync of one ledger to a durable store.

    State moves ``IDLE -> SYNCING -> IDLE`` on success and
    ``IDLE -> SYNCING -> ERROR`` on failure; the next attempt starts from
    either. Attempts are serialized, so a forced sync issued while the timer
    is syncing waits for it and then runs on the fresh buffer.
    """

    def __init__(
        self,
        ledger: EventLedger,
        store: RecordStore,
        interval: float = DEFAULT_SYNC_INTERVAL,
    ):
        """Initialize the coordinator.

        Args:
            ledger: Ledger to drain
            store: Durable store to write to
            interval: Seconds between periodic syncs
        """
        self._ledger: EventLedger | None = ledger
        self._store = store
        self.interval = interval
        self.state = SyncState.IDLE
        self.last_sync_at: datetime | None = None
        self.last_error: str | None = None
        self.consecutive_failures = 0
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def ledger(self) -> EventLedger | None:
        return self._ledger

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def detach(self) -> None:
        """Stop applying results to the ledger; in-flight results are dropped."""
        self._ledger = None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(self) -> SyncResult:
        """Run one sync attempt. Never raises."""
        ledger = self._ledger
        if ledger is None:
            return SyncResult(success=False, reason="detached")
        if not ledger.session_id:
            logger.warning("Record sync skipped: no session id")
            return SyncResult(success=False, reason="no_session")

        async with self._lock:
            return await self._attempt(ledger)

    async def force_sync(self) -> SyncResult:
        """Sync now and report the outcome to the caller."""
        return await self.sync()

    async def _attempt(self, ledger: EventLedger) -> SyncResult:
        self.state = SyncState.SYNCING
        try:
            payload, event_ids = build_payload(ledger)
            result = await self._store.sync(payload)
            if result is None:
                result = SyncResult(success=False, reason="store returned no result")
        except Exception as e:
            result = SyncResult(success=False, reason=_describe(e))
            event_ids = []

        if self._ledger is not ledger:
            logger.info("Discarding sync result for detached record %s", ledger.record_id)
            self.state = SyncState.IDLE
            return result

        if result.success:
            ledger.clear_pending_sync(event_ids)
            self.last_sync_at = datetime.now(timezone.utc)
            self.last_error = None
            self.consecutive_failures = 0
            self.state = SyncState.IDLE
            logger.debug("Synced %d event(s) for record %s", len(event_ids), ledger.record_id)
        else:
            self.last_error = result.reason or "sync failed"
            self.consecutive_failures += 1
            self.state = SyncState.ERROR
            logger.warning(
                "Record sync failed for session %s (attempt %d): %s",
                ledger.session_id,
                self.consecutive_failures,
                self.last_error,
            )
        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic sync task (an immediate sync, then every interval)."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="encounter-record-sync")

    async def _run(self) -> None:
        while True:
            # Shielded so that stopping the timer never aborts a write mid-flight;
            # stop() awaits the handle instead
            self._inflight = asyncio.create_task(self.sync())
            await asyncio.shield(self._inflight)
            self._inflight = None
            await asyncio.sleep(self.interval)

    async def stop(self, final_sync: bool = True) -> SyncResult | None:
        """Cancel the timer and wait for a tick already in flight.

        Then sync one last time (unless *final_sync* is False) and detach.
        """
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        if self._inflight is not None:
            # sync() never raises
            await self._inflight
            self._inflight = None

        result = await self.sync() if final_sync else None
        self.detach()
        return result


# ----------------------------------------------------------------------
# Resume
# ----------------------------------------------------------------------


@dataclass
class ResumeResult:
    """Ledger obtained at session start and how it was obtained."""

    ledger: EventLedger
    outcome: ResumeOutcome
    error: str | None = None


async def resume_or_create(
    store: RecordStore,
    session_id: str | None,
    case_id: str | None = None,
    patient_info: PatientInfo | Mapping[str, Any] | None = None,
    clock: Clock | None = None,
) -> ResumeResult:
    """Rebuild the ledger persisted for *session_id*, or start a fresh one.

    A persisted document replaces the ledger wholesale (record id, start time,
    patient, events, vitals). A missing document, a failed load or a document
    that does not validate all yield a fresh ledger; the latter two are
    reported through the outcome and logged.
    """

    def fresh() -> EventLedger:
        return EventLedger(session_id, case_id, patient_info, clock=clock)

    if not session_id:
        return ResumeResult(fresh(), ResumeOutcome.FRESH)

    try:
        document = await store.load(session_id)
    except Exception as e:
        logger.warning("Loading record for session %s failed, starting fresh: %s", session_id, e)
        return ResumeResult(fresh(), ResumeOutcome.LOAD_FAILED, _describe(e))

    if document is None:
        return ResumeResult(fresh(), ResumeOutcome.FRESH)

    if not isinstance(document, Mapping):
        message = f"document is a {type(document).__name__}, not an object"
        logger.warning("Persisted record for session %s is invalid, starting fresh: %s", session_id, message)
        return ResumeResult(fresh(), ResumeOutcome.INVALID_DOCUMENT, message)

    missing = [key for key in RESUME_REQUIRED_KEYS if key not in document]
    if missing:
        message = f"document is missing {', '.join(missing)}"
        logger.warning("Persisted record for session %s is invalid, starting fresh: %s", session_id, message)
        return ResumeResult(fresh(), ResumeOutcome.INVALID_DOCUMENT, message)

    try:
        persisted = EncounterRecord.model_validate(document)
    except ValidationError as e:
        logger.warning(
            "Persisted record for session %s is invalid, starting fresh: %d error(s)",
            session_id,
            e.error_count(),
        )
        return ResumeResult(fresh(), ResumeOutcome.INVALID_DOCUMENT, str(e))

    if persisted.session_id is not None and str(persisted.session_id) != str(session_id):
        message = f"document belongs to session {persisted.session_id}"
        logger.warning("Persisted record for session %s is invalid, starting fresh: %s", session_id, message)
        return ResumeResult(fresh(), ResumeOutcome.INVALID_DOCUMENT, message)

    ledger = EventLedger(
        session_id,
        persisted.case_id if persisted.case_id is not None else case_id,
        persisted.patient,
        record_id=persisted.record_id,
        started_at=persisted.started_at,
        clock=clock,
    )
    ledger.load_events(persisted.events)
    ledger.restore_state(persisted.current_state)
    logger.info(
        "Resumed record %s for session %s with %d event(s)",
        ledger.record_id,
        session_id,
        ledger.get_event_count(),
    )
    return ResumeResult(ledger, ResumeOutcome.RESUMED)
