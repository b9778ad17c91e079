"""Flatten overlapping anchors into disjoint highlight ranges.

Event-sweep: every anchored span contributes a start and an end event.
Events sort by position; at an equal position ``end`` events go before
``start`` events, so a range closing where another opens never leaves a
zero-width piece behind.  Sweeping left to right, a new range is emitted
whenever the position advances while the active set is non-empty.

Identical spans therefore collapse into one range carrying every id, and
partially overlapping spans split at each boundary instead of nesting.
Nested wrappers would corrupt the position map of the next render.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_END = 0
_START = 1


@dataclass(frozen=True)
class AnchoredSpan:
    """One annotation's render-time range (stored or drift-corrected)."""

    annotation_id: str
    start: int
    end: int


@dataclass(frozen=True)
class ResolvedRange:
    """A disjoint highlight range and every annotation active across it.

    Attributes:
        start: First plain-text offset (inclusive).
        end: Last plain-text offset (exclusive).
        annotation_ids: Active annotations, in input order.
        key: Wrapper identity, ``hl-<n>`` in ascending range order.
    """

    start: int
    end: int
    annotation_ids: tuple[str, ...]
    key: str


def resolve_ranges(spans: Iterable[AnchoredSpan]) -> list[ResolvedRange]:
    """Compute ascending, non-overlapping ranges from possibly overlapping spans.

    Spans with ``end <= start`` are ignored, and a repeated annotation id
    keeps only its first span.  Returns an empty list for no input.
    """
    order: dict[str, int] = {}
    events: list[tuple[int, int, int, str]] = []
    for span in spans:
        if span.end <= span.start:
            logger.debug(
                "Ignoring empty span %d-%d for %s",
                span.start,
                span.end,
                span.annotation_id,
            )
            continue
        if span.annotation_id in order:
            logger.debug("Ignoring repeated span for %s", span.annotation_id)
            continue
        idx = len(order)
        order[span.annotation_id] = idx
        events.append((span.start, _START, idx, span.annotation_id))
        events.append((span.end, _END, idx, span.annotation_id))

    if not events:
        return []

    events.sort()

    active: dict[str, int] = {}
    bounds: list[tuple[int, int, tuple[str, ...]]] = []
    prev_pos: int | None = None

    for pos, kind, idx, annotation_id in events:
        if prev_pos is not None and pos > prev_pos and active:
            ids = tuple(sorted(active, key=active.__getitem__))
            bounds.append((prev_pos, pos, ids))
        if kind == _START:
            active[annotation_id] = idx
        else:
            active.pop(annotation_id, None)
        prev_pos = pos

    return [
        ResolvedRange(start=start, end=end, annotation_ids=ids, key=f"hl-{n}")
        for n, (start, end, ids) in enumerate(bounds)
    ]
