from datetime import datetime, timedelta, timezone

import pytest

from encounter_record.ledger import EventLedger
from encounter_record.models import PatientInfo


class FakeClock:
    """Controllable clock; call it to read, ``advance`` to move forward."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, minutes=0, seconds=0):
        self.now += timedelta(minutes=minutes, seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def patient():
    return PatientInfo(
        name="John Doe",
        age=58,
        gender="male",
        mrn="MRN-001",
        chief_complaint="chest pain",
    )


@pytest.fixture
def ledger(clock, patient):
    return EventLedger("session-1", "case-1", patient, clock=clock)
