"""HTTP record store client.

Talks to the simulator backend's patient-record endpoints:

- ``POST   /api/patient-record/sync``
- ``GET    /api/patient-record/{session_id}``
- ``GET    /api/patient-record/{session_id}/events?verb=...``
- ``DELETE /api/patient-record/{session_id}``
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..models.sync import SyncPayload, SyncResult

logger = logging.getLogger(__name__)


class HttpRecordStore:
    """Async record store client over HTTP."""

    PREFIX = "/api/patient-record"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Backend origin, e.g. ``http://localhost:3001``
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )

    async def sync(self, payload: SyncPayload) -> SyncResult:
        """POST the payload.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response
            httpx.TransportError: When the backend cannot be reached
        """
        async with self._client() as client:
            response = await client.post(f"{self.PREFIX}/sync", json=payload.model_dump(mode="json"))
            response.raise_for_status()
            data = response.json() if response.content else {}

        if isinstance(data, dict) and data.get("success") is False:
            return SyncResult(success=False, reason=str(data.get("reason") or data.get("error") or "rejected"))
        stored = data.get("events_stored", len(payload.events)) if isinstance(data, dict) else len(payload.events)
        return SyncResult(success=True, events_stored=stored)

    async def load(self, session_id: str) -> dict[str, Any] | None:
        """GET the persisted document; None when the backend has none.

        Raises:
            httpx.HTTPStatusError: On a non-2xx, non-404 response
        """
        async with self._client() as client:
            response = await client.get(f"{self.PREFIX}/{session_id}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        return data.get("document") if isinstance(data, dict) else None

    async def load_events(self, session_id: str, verb: str | None = None) -> list[dict[str, Any]]:
        """GET stored events. Failures are logged and yield an empty list."""
        params = {"verb": verb} if verb else None
        try:
            async with self._client() as client:
                response = await client.get(f"{self.PREFIX}/{session_id}/events", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning("Loading events for session %s failed: %s", session_id, e)
            return []
        return data.get("events", []) if isinstance(data, dict) else []

    async def delete(self, session_id: str) -> bool:
        """DELETE the stored record. Failures are logged and yield False."""
        try:
            async with self._client() as client:
                response = await client.delete(f"{self.PREFIX}/{session_id}")
        except httpx.HTTPError as e:
            logger.warning("Deleting record for session %s failed: %s", session_id, e)
            return False
        return response.is_success
