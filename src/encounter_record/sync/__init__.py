"""Durable synchronization of encounter records."""

from __future__ import annotations

from pathlib import Path

from ..config import RecordConfig
from ..protocols import RecordStore
from .coordinator import (
    DEFAULT_SYNC_INTERVAL,
    ResumeResult,
    SyncCoordinator,
    build_payload,
    resume_or_create,
)
from .file_store import JsonFileRecordStore
from .http_store import HttpRecordStore
from .memory_store import InMemoryRecordStore


def create_store(config: RecordConfig) -> RecordStore:
    """Build the record store selected by *config*.

    Raises:
        ValueError: If ``config.store_backend`` is not a known backend.
    """
    backend = config.store_backend
    if backend == "memory":
        return InMemoryRecordStore()
    if backend == "file":
        return JsonFileRecordStore(Path(config.data_dir))
    if backend == "http":
        return HttpRecordStore(config.api_base_url, timeout=config.http_timeout)
    raise ValueError(f"Unknown record store backend: {backend!r}")


__all__ = [
    "DEFAULT_SYNC_INTERVAL",
    "HttpRecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "ResumeResult",
    "SyncCoordinator",
    "build_payload",
    "create_store",
    "resume_or_create",
]
