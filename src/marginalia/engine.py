"""Render pipeline: stored annotations + original markup -> highlighted markup.

Every render runs the full ``correct_drift -> resolve_ranges ->
insert_highlights`` pipeline from scratch against the stored markup.  No
incremental diffing, and never against previously rendered output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from marginalia.config import AnnotationConfig, get_settings
from marginalia.highlight.drift import DriftStatus, correct_drift
from marginalia.highlight.ranges import AnchoredSpan, resolve_ranges
from marginalia.highlight.renderer import insert_highlights
from marginalia.projection.plain_text import project_plain_text

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from marginalia.highlight.renderer import RenderFailure
    from marginalia.highlight.ranges import ResolvedRange
    from marginalia.models import Annotation
    from marginalia.projection.plain_text import Projection

logger = logging.getLogger(__name__)

STALE_NOTICE = "Comment on text that has since changed"


class CommentStatus(StrEnum):
    """How a top-level annotation appears in the comment list."""

    ANCHORED = "anchored"
    CORRECTED = "corrected"
    STALE = "stale"
    RENDER_FAILED = "render_failed"
    UNANCHORED = "unanchored"


@dataclass(frozen=True)
class CommentView:
    """One entry of the comment list for a render.

    Attributes:
        annotation: The stored annotation, unchanged.
        status: Highlight outcome for this render.
        start: Render-time start offset (None when stale or unanchored).
        end: Render-time end offset.
        highlight_keys: Wrappers displaying this annotation.
        notice: User-facing explanation when there is no highlight.
    """

    annotation: Annotation
    status: CommentStatus
    start: int | None = None
    end: int | None = None
    highlight_keys: tuple[str, ...] = ()
    notice: str | None = None

    @property
    def has_highlight(self) -> bool:
        return bool(self.highlight_keys)


@dataclass(frozen=True)
class RenderResult:
    """Output of one render pass."""

    markup: str
    plain_text: str
    ranges: tuple[ResolvedRange, ...]
    comments: tuple[CommentView, ...]
    failures: tuple[RenderFailure, ...]

    @property
    def render_failures(self) -> list[str]:
        """Ids of annotations whose highlight could not be placed."""
        return [f.annotation_id for f in self.failures]

    @property
    def stale(self) -> list[str]:
        """Ids of annotations whose quoted text no longer exists."""
        return [
            c.annotation.id for c in self.comments if c.status is CommentStatus.STALE
        ]

    @property
    def placements(self) -> dict[str, tuple[str, ...]]:
        """Annotation id -> wrapper keys, for annotations that got a highlight."""
        return {
            c.annotation.id: c.highlight_keys for c in self.comments if c.has_highlight
        }

    def comment(self, annotation_id: str) -> CommentView | None:
        for view in self.comments:
            if view.annotation.id == annotation_id:
                return view
        return None


def _comment_order(view: CommentView) -> tuple[int, int, float]:
    """Live anchors by position, then stale by stored start, then unanchored."""
    created = view.annotation.created_at.timestamp()
    if view.start is not None:
        return (0, view.start, created)
    anchor = view.annotation.anchor
    if anchor is not None:
        return (1, anchor.start, created)
    return (2, 0, created)


def render_with_highlights(
    markup: str,
    annotations: Iterable[Annotation],
    *,
    new_ids: Collection[str] = frozenset(),
    config: AnnotationConfig | None = None,
    projection: Projection | None = None,
) -> RenderResult:
    """Highlight every live anchor of *annotations* in *markup*.

    Args:
        markup: The document's stored original markup.
        annotations: The document's annotations.  Replies are ignored.
        new_ids: Annotations to render with the "newly created" pulse flag.
        config: Annotation settings; defaults to ``get_settings().annotation``.
        projection: Projection of *markup* if the caller already has one.

    Returns:
        ``RenderResult`` with the highlighted markup and one ``CommentView``
        per top-level annotation, including stale and unplaceable ones.
    """
    config = config or get_settings().annotation
    projection = projection or project_plain_text(markup)
    plain_text = projection.plain_text

    top_level = sorted(
        (a for a in annotations if not a.is_reply), key=lambda a: a.created_at
    )

    spans: list[AnchoredSpan] = []
    drift: dict[str, tuple[CommentStatus, int | None, int | None]] = {}
    for annotation in top_level:
        if annotation.anchor is None:
            drift[annotation.id] = (CommentStatus.UNANCHORED, None, None)
            continue
        result = correct_drift(annotation.anchor, plain_text, config.drift_window)
        start, end = result.start, result.end
        if start is None or end is None:
            drift[annotation.id] = (CommentStatus.STALE, None, None)
            continue
        status = (
            CommentStatus.ANCHORED
            if result.status is DriftStatus.VALID
            else CommentStatus.CORRECTED
        )
        drift[annotation.id] = (status, start, end)
        spans.append(AnchoredSpan(annotation.id, start, end))

    ranges = resolve_ranges(spans)
    output = insert_highlights(
        markup,
        ranges,
        projection.position_map,
        new_ids=new_ids,
        tag=config.highlight_tag,
        css_class=config.highlight_class,
    )
    failed = {f.annotation_id for f in output.failures}

    views: list[CommentView] = []
    for annotation in top_level:
        status, start, end = drift[annotation.id]
        notice = STALE_NOTICE if status is CommentStatus.STALE else None
        if annotation.id in failed:
            status = CommentStatus.RENDER_FAILED
        views.append(
            CommentView(
                annotation=annotation,
                status=status,
                start=start,
                end=end,
                highlight_keys=output.placed.get(annotation.id, ()),
                notice=notice,
            )
        )
    views.sort(key=_comment_order)

    logger.info(
        "Rendered %d annotations: %d ranges, %d stale, %d render failures",
        len(top_level),
        len(ranges),
        sum(1 for v in views if v.status is CommentStatus.STALE),
        len(output.failures),
    )
    return RenderResult(
        markup=output.markup,
        plain_text=plain_text,
        ranges=tuple(ranges),
        comments=tuple(views),
        failures=output.failures,
    )
