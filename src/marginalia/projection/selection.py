"""Turn a live text selection into a plain-text anchor candidate.

Selection boundaries arrive as ``(node_index, offset)`` pairs: the ordinal
of a text node in the projector's walk plus an offset into that node's raw
text, which is what a client-side text walker reports for a DOM Range.
Each boundary resolves independently against the same ``PositionMap``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from marginalia.config import DEFAULT_MIN_SELECTION_LENGTH
from marginalia.errors import (
    BoundaryUnresolvable,
    CaptureError,
    SelectionEmpty,
    SelectionOutsideContent,
    SelectionTooShort,
)
from marginalia.models import Anchor
from marginalia.projection.plain_text import decoded_to_collapsed_offset

if TYPE_CHECKING:
    from marginalia.projection.plain_text import PositionMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionPoint:
    """One end of a selection: text node ordinal and raw intra-node offset."""

    node_index: int
    offset: int


@dataclass(frozen=True)
class Selection:
    """A user selection as reported by the content view.

    ``anchor`` is where the drag started and ``focus`` where it ended, so
    ``focus`` may precede ``anchor`` for backwards selections.
    """

    anchor: SelectionPoint
    focus: SelectionPoint
    document_id: str | None = None

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus


@dataclass(frozen=True)
class AnchorCandidate:
    """A resolved selection, ready to be persisted as an ``Anchor``."""

    start: int
    end: int
    text: str

    def to_anchor(self) -> Anchor:
        return Anchor(start=self.start, end=self.end, quoted_text=self.text)


def _resolve_point(position_map: PositionMap, point: SelectionPoint) -> int:
    node = position_map.node(point.node_index)
    if node is None or not 0 <= point.offset <= len(node.decoded_text):
        raise BoundaryUnresolvable(point.node_index, point.offset)
    return node.char_start + decoded_to_collapsed_offset(
        node.decoded_text, point.offset
    )


def capture_selection(
    position_map: PositionMap,
    selection: Selection,
    *,
    min_length: int = DEFAULT_MIN_SELECTION_LENGTH,
    trim: bool = True,
) -> AnchorCandidate:
    """Resolve *selection* to ``[start, end)`` offsets or raise.

    Args:
        position_map: Map built from the markup the selection was made in.
        selection: Boundaries reported by the content view.
        min_length: Shortest accepted selection, after trimming.
        trim: Drop leading/trailing whitespace from the selection.

    Raises:
        SelectionOutsideContent: Different document, or a document with no text.
        BoundaryUnresolvable: A boundary names a node not in the map.
        SelectionEmpty: Collapsed or whitespace-only selection.
        SelectionTooShort: Fewer than *min_length* characters.
    """
    if (
        selection.document_id is not None
        and position_map.document_id is not None
        and selection.document_id != position_map.document_id
    ):
        msg = (
            f"Selection in document {selection.document_id!r} does not belong "
            f"to document {position_map.document_id!r}"
        )
        raise SelectionOutsideContent(msg)
    if not position_map.nodes:
        msg = "Document has no selectable text"
        raise SelectionOutsideContent(msg)
    if selection.is_collapsed:
        msg = "Selection is collapsed"
        raise SelectionEmpty(msg)

    start, end = sorted(
        (
            _resolve_point(position_map, selection.anchor),
            _resolve_point(position_map, selection.focus),
        )
    )

    text = position_map.plain_text
    if trim:
        while start < end and text[start].isspace():
            start += 1
        while end > start and text[end - 1].isspace():
            end -= 1

    if start >= end:
        msg = "Selection contains no text"
        raise SelectionEmpty(msg)
    if end - start < min_length:
        raise SelectionTooShort(end - start, min_length)

    return AnchorCandidate(start=start, end=end, text=text[start:end])


def resolve_selection(
    position_map: PositionMap,
    selection: Selection,
    *,
    min_length: int = DEFAULT_MIN_SELECTION_LENGTH,
    trim: bool = True,
) -> AnchorCandidate | None:
    """Non-raising ``capture_selection``: returns None when capture declines."""
    try:
        return capture_selection(
            position_map, selection, min_length=min_length, trim=trim
        )
    except CaptureError as exc:
        logger.debug("Selection capture declined: %s", exc)
        return None
