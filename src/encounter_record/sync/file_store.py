"""Local JSON-file record store.

Each session is persisted as ``{data_dir}/{session_id}.json`` holding the
latest full document and the deduplicated event log.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Any

from ..models.sync import StoredRecord, SyncPayload, SyncResult

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileRecordStore:
    """Record store backed by one JSON file per session."""

    def __init__(self, data_dir: str | Path):
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _path(self, session_id: str) -> Path:
        name = _SAFE_NAME.sub("_", str(session_id))
        return self._data_dir / f"{name}.json"

    def _read(self, session_id: str) -> StoredRecord | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        return StoredRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def _write(self, stored: StoredRecord) -> None:
        """Atomically persist *stored* (write .tmp then rename)."""
        target = self._path(stored.session_id)
        tmp = target.with_suffix(".tmp")
        tmp.write_text(stored.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, target)

    def _delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _sync(self, payload: SyncPayload) -> int:
        stored = self._read(payload.session_id)
        if stored is None:
            stored = StoredRecord.from_payload(payload)
            added = len(stored.events)
        else:
            added = stored.apply(payload)
        self._write(stored)
        return added

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def sync(self, payload: SyncPayload) -> SyncResult:
        async with self._lock:
            added = await asyncio.to_thread(self._sync, payload)
        logger.debug("Wrote %d new event(s) for session %s", added, payload.session_id)
        return SyncResult(success=True, events_stored=added)

    async def load(self, session_id: str) -> dict[str, Any] | None:
        stored = await asyncio.to_thread(self._read, session_id)
        return stored.document if stored else None

    async def load_events(self, session_id: str, verb: str | None = None) -> list[dict[str, Any]]:
        stored = await asyncio.to_thread(self._read, session_id)
        return stored.events_for(verb) if stored else []

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return await asyncio.to_thread(self._delete, session_id)
