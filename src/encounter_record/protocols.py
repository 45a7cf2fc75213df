"""Protocol definitions for encounter record interfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models.sync import SyncPayload, SyncResult


@runtime_checkable
class RecordStore(Protocol):
    """Durable store that encounter records are synchronized to.

    In-memory, JSON-file and HTTP stores implement this interface, so the
    sync coordinator can use them interchangeably.
    """

    async def sync(self, payload: SyncPayload) -> SyncResult:
        """Persist the full document and any new events.

        Re-delivery of an event id that is already stored must be harmless.

        Args:
            payload: Snapshot plus events appended since the last ack.

        Returns:
            SyncResult describing whether the store accepted the payload.
        """
        ...

    async def load(self, session_id: str) -> dict[str, Any] | None:
        """Return the last persisted document for *session_id*, or None."""
        ...

    async def load_events(self, session_id: str, verb: str | None = None) -> list[dict[str, Any]]:
        """Return stored events for *session_id*, optionally of one verb."""
        ...

    async def delete(self, session_id: str) -> bool:
        """Remove everything stored for *session_id*. Returns True if it existed."""
        ...
