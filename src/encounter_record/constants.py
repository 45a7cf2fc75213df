"""Fixed taxonomy for encounter record events.

The eight verbs are closed. Category/route values are the conventional
vocabulary used by producers; they are not enforced by the ledger.
"""

from __future__ import annotations

from enum import Enum


class Verb(str, Enum):
    """Event kinds recorded in an encounter ledger."""

    OBTAINED = "OBTAINED"
    EXAMINED = "EXAMINED"
    ELICITED = "ELICITED"
    NOTED = "NOTED"
    ORDERED = "ORDERED"
    ADMINISTERED = "ADMINISTERED"
    CHANGED = "CHANGED"
    EXPRESSED = "EXPRESSED"


ALL_VERBS: frozenset[Verb] = frozenset(Verb)

# Vital sign keys tracked in current state (order is display order)
VITAL_KEYS: tuple[str, ...] = ("hr", "bp_sys", "bp_dia", "rr", "spo2", "temp", "pain")

# CHANGED.category value that writes through to current vitals
VITAL_CATEGORY = "vital"


class HistoryCategory(str, Enum):
    HPI = "hpi"
    PMH = "pmh"
    MEDICATION = "medication"
    ALLERGY = "allergy"
    FAMILY_HX = "family_hx"
    SOCIAL_HX = "social_hx"
    ROS = "ros"


class ExamRegion(str, Enum):
    CARDIAC = "cardiac"
    RESPIRATORY = "respiratory"
    ABDOMINAL = "abdominal"
    NEUROLOGICAL = "neurological"
    HEENT = "heent"
    EXTREMITIES = "extremities"
    SKIN = "skin"
    GENERAL = "general"


class ExamTechnique(str, Enum):
    AUSCULTATION = "auscultation"
    PALPATION = "palpation"
    INSPECTION = "inspection"
    PERCUSSION = "percussion"
    SPECIAL_TEST = "special_test"


class FindingSource(str, Enum):
    EXAM = "exam"
    LAB = "lab"
    IMAGING = "imaging"
    PROCEDURE = "procedure"


class NotedSource(str, Enum):
    MONITOR = "monitor"
    ALARM = "alarm"
    ECG = "ecg"
    DISPLAY = "display"
    PATIENT = "patient"


class OrderCategory(str, Enum):
    LAB = "lab"
    IMAGING = "imaging"
    MEDICATION = "medication"
    CONSULT = "consult"
    PROCEDURE = "procedure"


class OrderStatus(str, Enum):
    PENDING = "pending"
    RESULTED = "resulted"
    CANCELLED = "cancelled"


class TreatmentCategory(str, Enum):
    MEDICATION = "medication"
    FLUID = "fluid"
    OXYGEN = "oxygen"
    PROCEDURE = "procedure"


class ChangeCategory(str, Enum):
    VITAL = "vital"
    STATUS = "status"
    SYMPTOM = "symptom"
    CONDITION = "condition"


class ExpressionType(str, Enum):
    CONCERN = "concern"
    QUESTION = "question"
    STATEMENT = "statement"
    REQUEST = "request"
    EMOTION = "emotion"


class Route(str, Enum):
    PO = "PO"
    IV = "IV"
    SL = "SL"
    IM = "IM"
    SC = "SC"
    TOPICAL = "topical"
    INHALED = "inhaled"
