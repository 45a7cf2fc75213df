import asyncio
import logging

import pytest

from encounter_record import session as session_module
from encounter_record.config import RecordConfig
from encounter_record.models import ResumeOutcome, SyncState
from encounter_record.session import (
    EncounterSession,
    SessionAlreadyOpenError,
    SessionClosedError,
    get_open_session,
)
from encounter_record.sync import InMemoryRecordStore


@pytest.fixture(autouse=True)
def _no_leaked_sessions():
    yield
    session_module._open_sessions.clear()


@pytest.fixture
def config():
    return RecordConfig(sync_interval=3600)


@pytest.fixture
def store():
    return InMemoryRecordStore()


def test_open_fresh_session(store, config, clock, patient):
    async def scenario():
        enc = await EncounterSession.open("42", "case-7", patient, store=store, config=config, clock=clock)
        assert get_open_session("42") is enc
        await enc.close()
        return enc

    enc = asyncio.run(scenario())

    assert enc.resume_outcome is ResumeOutcome.FRESH
    assert enc.closed
    assert get_open_session("42") is None


def test_second_owner_is_rejected(store, config, clock):
    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock)
        with pytest.raises(SessionAlreadyOpenError):
            await EncounterSession.open("42", store=store, config=config, clock=clock)
        await enc.close()

    asyncio.run(scenario())


def test_reopen_resumes_after_final_sync(store, config, clock, patient):
    async def scenario():
        async with await EncounterSession.open("42", "case-7", patient, store=store, config=config, clock=clock) as enc:
            enc.obtained("hpi", "Chest pain since this morning")
            clock.advance(minutes=3)
            enc.changed("vital", "hr", 88, 110)

        reopened = await EncounterSession.open("42", store=store, config=config, clock=clock)
        await reopened.close()
        return reopened

    reopened = asyncio.run(scenario())

    assert reopened.resume_outcome is ResumeOutcome.RESUMED
    assert [e.verb for e in reopened.get_events()] == ["OBTAINED", "CHANGED"]
    assert reopened.get_current_state().vitals["hr"] == "110"
    assert reopened.get_record().patient.name == "John Doe"


def test_close_without_final_sync_leaves_pending(store, clock):
    config = RecordConfig(sync_interval=3600, final_sync_on_close=False)

    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock, start_sync=False)
        enc.noted("alarm", "SpO2 low")
        result = await enc.close()
        return enc, result

    enc, result = asyncio.run(scenario())

    assert result is None
    assert len(enc.ledger.get_pending_sync()) == 1
    assert asyncio.run(store.load("42")) is None


def test_close_is_idempotent(store, config, clock):
    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock)
        first = await enc.close()
        second = await enc.close()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.success
    assert second is None


def test_closed_session_rejects_writes(store, config, clock):
    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock)
        await enc.close()
        return enc

    enc = asyncio.run(scenario())

    with pytest.raises(SessionClosedError):
        enc.ordered("lab", "Troponin")
    assert enc.get_event_count() == 0


def test_failed_open_releases_session_id(config, clock):
    broken = RecordConfig(store_backend="carrier-pigeon")

    async def scenario():
        with pytest.raises(ValueError):
            await EncounterSession.open("42", config=broken, clock=clock)
        enc = await EncounterSession.open("42", store=InMemoryRecordStore(), config=config, clock=clock)
        await enc.close()

    asyncio.run(scenario())


def test_listeners_are_notified(store, config, clock, caplog):
    seen = []

    def failing(enc):
        raise RuntimeError("listener bug")

    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock, start_sync=False)
        unsubscribe = enc.subscribe(lambda s: seen.append(s.get_event_count()))
        enc.subscribe(failing)
        enc.obtained("hpi", "onset")
        enc.examined("chest", "auscultation")
        unsubscribe()
        enc.noted("alarm", "HR high")
        await enc.close()

    with caplog.at_level(logging.ERROR, logger="encounter_record.session"):
        asyncio.run(scenario())

    assert seen == [1, 2]
    assert "listener failed" in caplog.text


def test_narrative_with_allow_list(store, config, clock, patient):
    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock, patient_info=patient)
        enc.obtained("hpi", "Crushing chest pain", source="It feels like an elephant on my chest")
        enc.ordered("lab", "Troponin")
        text = enc.narrative("timeline", allowed_verbs=["OBTAINED"])
        full = enc.narrative("timeline")
        await enc.close()
        return text, full

    text, full = asyncio.run(scenario())

    assert "Troponin" not in text
    assert "elephant" in text
    assert "Troponin" in full


def test_force_sync_reports_outcome(store, config, clock):
    async def scenario():
        enc = await EncounterSession.open("42", store=store, config=config, clock=clock, start_sync=False)
        enc.obtained("hpi", "onset")
        result = await enc.force_sync()
        state = enc.sync_state, enc.last_sync_time, enc.sync_error
        await enc.close()
        return result, state

    result, (state, last_sync, error) = asyncio.run(scenario())

    assert result.success
    assert state is SyncState.IDLE
    assert last_sync is not None
    assert error is None
    assert [e["verb"] for e in asyncio.run(store.load_events("42"))] == ["OBTAINED"]
