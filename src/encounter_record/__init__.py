"""Encounter record - event ledger, narratives and durable sync for clinical simulations."""

# Lazy imports so that importing the models does not pull in httpx
def __getattr__(name: str):
    if name == "EventLedger":
        from .ledger import EventLedger
        return EventLedger
    elif name == "EncounterSession":
        from .session import EncounterSession
        return EncounterSession
    elif name == "SyncCoordinator":
        from .sync import SyncCoordinator
        return SyncCoordinator
    elif name == "RecordStore":
        from .protocols import RecordStore
        return RecordStore
    elif name == "Verb":
        from .constants import Verb
        return Verb
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = ["EventLedger", "EncounterSession", "SyncCoordinator", "RecordStore", "Verb"]
