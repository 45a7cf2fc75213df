"""Encounter record configuration settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

_TRUE = ("true", "1", "yes")


@dataclass
class RecordConfig:
    """Configuration for encounter record persistence."""

    # Sync settings
    sync_interval: float = 60.0
    final_sync_on_close: bool = True

    # Store selection: "memory", "file" or "http"
    store_backend: str = "memory"
    data_dir: str = "data/patient_records"

    # HTTP store settings
    api_base_url: str = "http://localhost:3001"
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> RecordConfig:
        """Load configuration from environment variables."""
        return cls(
            sync_interval=float(os.getenv("ENCOUNTER_RECORD_SYNC_INTERVAL", "60")),
            final_sync_on_close=os.getenv("ENCOUNTER_RECORD_FINAL_SYNC", "true").lower() in _TRUE,
            store_backend=os.getenv("ENCOUNTER_RECORD_STORE", "memory").lower(),
            data_dir=os.getenv("ENCOUNTER_RECORD_DATA_DIR", "data/patient_records"),
            api_base_url=os.getenv("ENCOUNTER_RECORD_API_URL", "http://localhost:3001"),
            http_timeout=float(os.getenv("ENCOUNTER_RECORD_HTTP_TIMEOUT", "30")),
        )


# Global config instance
_config: RecordConfig | None = None


def get_config() -> RecordConfig:
    """Get the global configuration instance (reads .env on first use)."""
    global _config
    if _config is None:
        load_dotenv()
        _config = RecordConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next call re-reads the env."""
    global _config
    _config = None
