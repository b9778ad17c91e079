"""Drift correction, range resolution and highlight insertion."""

from marginalia.highlight.drift import DriftResult, DriftStatus, correct_drift
from marginalia.highlight.ranges import AnchoredSpan, ResolvedRange, resolve_ranges
from marginalia.highlight.renderer import (
    HighlightOutput,
    RenderFailure,
    insert_highlights,
)

__all__ = [
    "AnchoredSpan",
    "DriftResult",
    "DriftStatus",
    "HighlightOutput",
    "RenderFailure",
    "ResolvedRange",
    "correct_drift",
    "insert_highlights",
    "resolve_ranges",
]
