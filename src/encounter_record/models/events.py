"""Encounter event schemas.

One frozen model per verb, combined into a discriminated union on ``verb``.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class BaseRecordEvent(BaseModel):
    """Fields shared by every recorded event."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., description="Unique event identifier")
    verb: str = Field(..., description="Event verb")
    time: int = Field(..., ge=0, description="Encounter minutes elapsed when recorded")


class ObtainedEvent(BaseRecordEvent):
    """History or information gathered from an interview."""

    verb: Literal["OBTAINED"] = "OBTAINED"
    category: str = Field(..., description="hpi, pmh, medication, allergy, ...")
    content: str = Field(..., description="What was asked or obtained")
    source: str | None = Field(
        default="patient",
        description="Who answered, or the answer text itself",
    )


class ExaminedEvent(BaseRecordEvent):
    """A physical exam maneuver was performed."""

    verb: Literal["EXAMINED"] = "EXAMINED"
    region: str
    technique: str
    detail: str | None = None


class ElicitedEvent(BaseRecordEvent):
    """A concrete finding or result surfaced."""

    verb: Literal["ELICITED"] = "ELICITED"
    source: str = Field(..., description="exam, lab, imaging or procedure")
    finding: str
    abnormal: bool
    category: str | None = None
    test_name: str | None = None
    value: str | None = None
    unit: str | None = None
    reference_range: str | None = None
    significance: str | None = None


class NotedEvent(BaseRecordEvent):
    """Something observed or acknowledged without being elicited."""

    verb: Literal["NOTED"] = "NOTED"
    source: str
    item: str
    trigger: str | None = None
    action: str | None = None


class OrderedEvent(BaseRecordEvent):
    """A test, treatment or consult was requested."""

    verb: Literal["ORDERED"] = "ORDERED"
    category: str
    item: str
    details: dict[str, Any] | None = Field(
        default=None,
        description="Free-form order details (dose, route, urgency, ...)",
    )
    status: str = "pending"


class AdministeredEvent(BaseRecordEvent):
    """A treatment was actually given."""

    verb: Literal["ADMINISTERED"] = "ADMINISTERED"
    category: str
    item: str
    dose: str
    route: str
    response: str | None = None


class ChangedEvent(BaseRecordEvent):
    """A tracked value transitioned."""

    verb: Literal["CHANGED"] = "CHANGED"
    category: str
    parameter: str
    from_value: str = Field(..., alias="from")
    to_value: str = Field(..., alias="to")
    trigger: str | None = None
    unit: str | None = None
    direction: Literal["increased", "decreased", "unchanged"] | None = None


class ExpressedEvent(BaseRecordEvent):
    """The patient communicated something unprompted."""

    verb: Literal["EXPRESSED"] = "EXPRESSED"
    type: str = Field(..., description="concern, question, statement, request, emotion")
    content: str
    context: str | None = None
    addressed: bool = False


RecordEvent = Annotated[
    Union[
        ObtainedEvent,
        ExaminedEvent,
        ElicitedEvent,
        NotedEvent,
        OrderedEvent,
        AdministeredEvent,
        ChangedEvent,
        ExpressedEvent,
    ],
    Field(discriminator="verb"),
]

EVENT_ADAPTER: TypeAdapter[RecordEvent] = TypeAdapter(RecordEvent)
EVENT_LIST_ADAPTER: TypeAdapter[list[RecordEvent]] = TypeAdapter(list[RecordEvent])


def _parse_number(value: Any) -> float | None:
    """Parse *value* as a finite number, or return None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def determine_direction(from_value: Any, to_value: Any) -> str | None:
    """Compare two values numerically.

    Returns ``"increased"``, ``"decreased"`` or ``"unchanged"``; ``None`` when
    either side is not a number.
    """
    start = _parse_number(from_value)
    end = _parse_number(to_value)
    if start is None or end is None:
        return None
    if end > start:
        return "increased"
    if end < start:
        return "decreased"
    return "unchanged"
