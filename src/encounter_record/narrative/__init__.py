"""Text projections of an encounter event log."""

from .common import truncate
from .context import to_context
from .summary import to_summary
from .synthesizer import (
    NarrativeStyle,
    allowed_verbs_from_access,
    filter_events,
    normalize_verbs,
    render_narrative,
)
from .timeline import EMPTY_TIMELINE, event_to_text, to_timeline

__all__ = [
    "EMPTY_TIMELINE",
    "NarrativeStyle",
    "allowed_verbs_from_access",
    "event_to_text",
    "filter_events",
    "normalize_verbs",
    "render_narrative",
    "to_context",
    "to_summary",
    "to_timeline",
    "truncate",
]
