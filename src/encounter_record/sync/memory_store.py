"""In-process record store."""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..models.sync import StoredRecord, SyncPayload, SyncResult

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """Record store backed by a dict; nothing survives the process.

    Useful for tests and for single-process deployments that only need
    resume across sessions opened in the same runtime.
    """

    def __init__(self):
        self._records: dict[str, StoredRecord] = {}

    async def sync(self, payload: SyncPayload) -> SyncResult:
        payload = payload.model_copy(deep=True)
        stored = self._records.get(payload.session_id)
        if stored is None:
            stored = StoredRecord.from_payload(payload)
            self._records[payload.session_id] = stored
            added = len(stored.events)
        else:
            added = stored.apply(payload)
        logger.debug("Stored %d new event(s) for session %s", added, payload.session_id)
        return SyncResult(success=True, events_stored=added)

    async def load(self, session_id: str) -> dict[str, Any] | None:
        stored = self._records.get(session_id)
        return copy.deepcopy(stored.document) if stored else None

    async def load_events(self, session_id: str, verb: str | None = None) -> list[dict[str, Any]]:
        stored = self._records.get(session_id)
        return copy.deepcopy(stored.events_for(verb)) if stored else []

    async def delete(self, session_id: str) -> bool:
        return self._records.pop(session_id, None) is not None
