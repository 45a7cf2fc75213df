import pytest

from encounter_record.config import RecordConfig, get_config, reset_config

ENV_VARS = (
    "ENCOUNTER_RECORD_SYNC_INTERVAL",
    "ENCOUNTER_RECORD_FINAL_SYNC",
    "ENCOUNTER_RECORD_STORE",
    "ENCOUNTER_RECORD_DATA_DIR",
    "ENCOUNTER_RECORD_API_URL",
    "ENCOUNTER_RECORD_HTTP_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


def test_defaults():
    config = RecordConfig.from_env()

    assert config.sync_interval == 60.0
    assert config.final_sync_on_close is True
    assert config.store_backend == "memory"
    assert config.api_base_url == "http://localhost:3001"
    assert config.http_timeout == 30.0


def test_from_env(monkeypatch):
    monkeypatch.setenv("ENCOUNTER_RECORD_SYNC_INTERVAL", "15")
    monkeypatch.setenv("ENCOUNTER_RECORD_FINAL_SYNC", "no")
    monkeypatch.setenv("ENCOUNTER_RECORD_STORE", "HTTP")
    monkeypatch.setenv("ENCOUNTER_RECORD_API_URL", "http://records:8080")
    monkeypatch.setenv("ENCOUNTER_RECORD_HTTP_TIMEOUT", "5")

    config = RecordConfig.from_env()

    assert config.sync_interval == 15.0
    assert config.final_sync_on_close is False
    assert config.store_backend == "http"
    assert config.api_base_url == "http://records:8080"
    assert config.http_timeout == 5.0


def test_get_config_is_cached_until_reset(monkeypatch):
    first = get_config()
    monkeypatch.setenv("ENCOUNTER_RECORD_STORE", "file")

    assert get_config() is first

    reset_config()
    assert get_config().store_backend == "file"
