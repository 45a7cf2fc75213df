import asyncio

import httpx
import pytest

from encounter_record.ledger import EventLedger
from encounter_record.models import ResumeOutcome, SyncResult, SyncState
from encounter_record.sync import InMemoryRecordStore, SyncCoordinator, build_payload, resume_or_create


class FlakyStore(InMemoryRecordStore):
    """In-memory store that can fail, reject, or pause mid-request."""

    def __init__(self):
        super().__init__()
        self.fail_with = None
        self.reject = False
        self.calls = []
        self.gate = None
        self.on_call = None

    async def sync(self, payload):
        self.calls.append(payload)
        if self.on_call is not None:
            self.on_call()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        if self.reject:
            return SyncResult(success=False, reason="quota exceeded")
        return await super().sync(payload)


def _ids(events):
    return [e["id"] if isinstance(e, dict) else e.id for e in events]


class TestBuildPayload:
    def test_payload_carries_pending_and_full_document(self, ledger):
        ledger.obtained("hpi", "onset")
        ledger.changed("vital", "hr", "80", "90")

        payload, ids = build_payload(ledger)

        assert payload.session_id == "session-1"
        assert payload.record_id == ledger.record_id
        assert _ids(payload.events) == ids == _ids(ledger.get_pending_sync())
        assert payload.events_count == 2
        assert payload.document["events"][1]["from"] == "80"
        assert payload.patient_info["name"] == "John Doe"
        assert payload.current_state["vitals"]["hr"] == "90"


class TestSyncCoordinator:
    def test_success_acknowledges_pending(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store)
        ledger.obtained("hpi", "onset")

        result = asyncio.run(coordinator.sync())

        assert result.success
        assert ledger.get_pending_sync() == []
        assert coordinator.state is SyncState.IDLE
        assert coordinator.last_sync_at is not None
        assert coordinator.last_error is None

    def test_failure_keeps_pending_and_records_error(self, ledger):
        store = FlakyStore()
        store.fail_with = httpx.ConnectError("connection refused")
        coordinator = SyncCoordinator(ledger, store)
        event = ledger.obtained("hpi", "onset")

        result = asyncio.run(coordinator.sync())

        assert not result.success
        assert "ConnectError" in result.reason
        assert _ids(ledger.get_pending_sync()) == [event.id]
        assert coordinator.state is SyncState.ERROR
        assert coordinator.last_error == result.reason
        assert coordinator.consecutive_failures == 1

    def test_rejected_result_is_a_failure(self, ledger):
        store = FlakyStore()
        store.reject = True
        coordinator = SyncCoordinator(ledger, store)
        ledger.noted("alarm", "HR high")

        result = asyncio.run(coordinator.sync())

        assert not result.success
        assert coordinator.last_error == "quota exceeded"
        assert len(ledger.get_pending_sync()) == 1

    def test_retry_after_failure_is_superset(self, ledger):
        store = FlakyStore()
        store.fail_with = RuntimeError("boom")
        coordinator = SyncCoordinator(ledger, store)
        first = ledger.obtained("hpi", "onset")

        asyncio.run(coordinator.sync())
        second = ledger.obtained("hpi", "radiation")
        store.fail_with = None
        result = asyncio.run(coordinator.sync())

        failed, retried = store.calls
        assert set(_ids(failed.events)) <= set(_ids(retried.events))
        assert _ids(retried.events) == [first.id, second.id]
        assert result.success
        assert coordinator.state is SyncState.IDLE
        assert coordinator.consecutive_failures == 0

    def test_events_appended_during_flight_stay_pending(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store)
        first = ledger.obtained("hpi", "onset")
        late = []
        store.on_call = lambda: late.append(ledger.noted("alarm", "SpO2 low"))

        result = asyncio.run(coordinator.sync())

        assert result.success
        assert _ids(store.calls[0].events) == [first.id]
        assert _ids(ledger.get_pending_sync()) == [late[0].id]

    def test_redelivery_does_not_duplicate(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store)
        event = ledger.obtained("hpi", "onset")
        payload, _ = build_payload(ledger)

        async def scenario():
            await store.sync(payload)
            return await coordinator.sync()

        result = asyncio.run(scenario())

        assert result.success
        assert result.events_stored == 0
        stored = asyncio.run(store.load_events("session-1"))
        assert _ids(stored) == [event.id]

    def test_no_session_is_skipped(self, clock):
        ledger = EventLedger(None, clock=clock)
        store = FlakyStore()
        result = asyncio.run(SyncCoordinator(ledger, store).sync())

        assert not result.success
        assert result.reason == "no_session"
        assert store.calls == []

    def test_detached_coordinator_discards_in_flight_result(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store)
        ledger.obtained("hpi", "onset")

        async def scenario():
            store.gate = asyncio.Event()
            task = asyncio.create_task(coordinator.sync())
            await asyncio.sleep(0)
            coordinator.detach()
            store.gate.set()
            return await task

        result = asyncio.run(scenario())

        assert result.success
        assert len(ledger.get_pending_sync()) == 1
        assert coordinator.last_sync_at is None

    def test_forced_syncs_are_serialized(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store)
        ledger.obtained("hpi", "onset")

        async def scenario():
            store.gate = asyncio.Event()
            first = asyncio.create_task(coordinator.force_sync())
            await asyncio.sleep(0)
            assert coordinator.state is SyncState.SYNCING
            ledger.obtained("hpi", "radiation")
            second = asyncio.create_task(coordinator.force_sync())
            await asyncio.sleep(0)
            assert len(store.calls) == 1
            store.gate.set()
            return await first, await second

        first, second = asyncio.run(scenario())

        assert first.success and second.success
        assert [len(call.events) for call in store.calls] == [1, 1]
        assert ledger.get_pending_sync() == []

    def test_periodic_task_and_final_sync(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store, interval=0.01)

        async def scenario():
            coordinator.start()
            assert coordinator.is_running
            ledger.obtained("hpi", "onset")
            await asyncio.sleep(0.05)
            ledger.noted("alarm", "last words")
            return await coordinator.stop()

        result = asyncio.run(scenario())

        assert result.success
        assert not coordinator.is_running
        assert coordinator.ledger is None
        assert ledger.get_pending_sync() == []
        stored = asyncio.run(store.load_events("session-1"))
        assert [e["verb"] for e in stored] == ["OBTAINED", "NOTED"]

    def test_stop_without_final_sync(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store, interval=3600)

        async def scenario():
            coordinator.start()
            while coordinator.last_sync_at is None:
                await asyncio.sleep(0)
            ledger.obtained("hpi", "onset")
            return await coordinator.stop(final_sync=False)

        assert asyncio.run(scenario()) is None
        assert len(store.calls) == 1
        assert len(ledger.get_pending_sync()) == 1

    def test_stop_waits_for_tick_in_flight(self, ledger):
        store = FlakyStore()
        coordinator = SyncCoordinator(ledger, store, interval=3600)
        event = ledger.obtained("hpi", "onset")

        async def scenario():
            store.gate = asyncio.Event()
            coordinator.start()
            while not store.calls:
                await asyncio.sleep(0)
            stopping = asyncio.create_task(coordinator.stop(final_sync=False))
            await asyncio.sleep(0)
            assert not stopping.done()
            late = ledger.noted("alarm", "SpO2 low")
            store.gate.set()
            return await stopping, late

        result, late = asyncio.run(scenario())

        assert result is None
        assert len(store.calls) == 1
        assert _ids(store.calls[0].events) == [event.id]
        assert _ids(ledger.get_pending_sync()) == [late.id]
        assert coordinator.last_sync_at is not None
        assert coordinator.ledger is None


class TestResume:
    def test_missing_document_gives_fresh_record(self, clock, patient):
        resumed = asyncio.run(resume_or_create(InMemoryRecordStore(), "s-1", "c-1", patient, clock=clock))

        assert resumed.outcome is ResumeOutcome.FRESH
        assert resumed.ledger.get_event_count() == 0
        assert resumed.ledger.get_patient_info() == patient

    def test_resume_reproduces_last_synced_document(self, ledger, clock):
        store = InMemoryRecordStore()
        ledger.set_initial_vitals({"hr": 80, "spo2": 98})
        ledger.obtained("hpi", "onset")
        clock.advance(minutes=4)
        ledger.changed("vital", "hr", "80", "104")
        asyncio.run(SyncCoordinator(ledger, store).sync())
        synced = ledger.get_record()

        resumed = asyncio.run(resume_or_create(store, "session-1", clock=clock))
        record = resumed.ledger.get_record()

        assert resumed.outcome is ResumeOutcome.RESUMED
        assert record.record_id == synced.record_id
        assert record.started_at == synced.started_at
        assert record.patient == synced.patient
        assert record.events == synced.events
        assert record.current_state == synced.current_state
        assert resumed.ledger.get_pending_sync() == []

    def test_next_event_after_resume_behaves_like_fresh(self, ledger, clock):
        store = InMemoryRecordStore()
        ledger.obtained("hpi", "onset")
        asyncio.run(SyncCoordinator(ledger, store).sync())
        clock.advance(minutes=6)

        resumed = asyncio.run(resume_or_create(store, "session-1", clock=clock)).ledger
        event = resumed.ordered("lab", "CBC")

        assert event.time == 6
        assert resumed.get_events()[-1] is event
        assert resumed.get_pending_sync() == [event]

    def test_load_failure_falls_back_to_fresh(self, clock):
        class BrokenStore(InMemoryRecordStore):
            async def load(self, session_id):
                raise httpx.ReadTimeout("timed out")

        resumed = asyncio.run(resume_or_create(BrokenStore(), "s-1", clock=clock))

        assert resumed.outcome is ResumeOutcome.LOAD_FAILED
        assert "ReadTimeout" in resumed.error
        assert resumed.ledger.get_event_count() == 0

    def test_invalid_document_falls_back_to_fresh(self, ledger, clock):
        store = InMemoryRecordStore()
        ledger.obtained("hpi", "onset")
        asyncio.run(SyncCoordinator(ledger, store).sync())
        store._records["session-1"].document["events"][0].pop("content")

        resumed = asyncio.run(resume_or_create(store, "session-1", clock=clock))

        assert resumed.outcome is ResumeOutcome.INVALID_DOCUMENT
        assert resumed.ledger.get_event_count() == 0
        assert resumed.ledger.record_id != ledger.record_id

    @pytest.mark.parametrize(
        "key", ["record_id", "session_id", "started_at", "patient", "events", "current_state"]
    )
    def test_incomplete_document_falls_back_to_fresh(self, ledger, clock, key):
        store = InMemoryRecordStore()
        ledger.obtained("hpi", "onset")
        asyncio.run(SyncCoordinator(ledger, store).sync())
        del store._records["session-1"].document[key]

        resumed = asyncio.run(resume_or_create(store, "session-1", clock=clock))

        assert resumed.outcome is ResumeOutcome.INVALID_DOCUMENT
        assert key in resumed.error
        assert resumed.ledger.get_event_count() == 0
        assert resumed.ledger.record_id != ledger.record_id

    def test_document_that_is_not_an_object_falls_back_to_fresh(self, clock):
        class ListStore(InMemoryRecordStore):
            async def load(self, session_id):
                return ["not", "a", "record"]

        resumed = asyncio.run(resume_or_create(ListStore(), "session-1", clock=clock))

        assert resumed.outcome is ResumeOutcome.INVALID_DOCUMENT

    def test_document_for_other_session_is_rejected(self, ledger, clock):
        store = InMemoryRecordStore()
        asyncio.run(SyncCoordinator(ledger, store).sync())
        store._records["other"] = store._records["session-1"]

        resumed = asyncio.run(resume_or_create(store, "other", clock=clock))

        assert resumed.outcome is ResumeOutcome.INVALID_DOCUMENT
