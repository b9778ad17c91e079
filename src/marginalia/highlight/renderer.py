"""Insert highlight wrappers into stored markup.

Transforms original markup + resolved ranges into markup with
``<span class="selection-highlight" data-annotation-ids="...">`` wrappers.
Wrappers are always applied to the stored original, never to markup that
already carries highlights.

Architecture:
    Each range is intersected with the text nodes it covers (from the
    ``PositionMap``), and every slice gets its own wrapper sharing the
    range's ``data-highlight-key``.  Wrappers therefore never straddle a tag
    and the result stays well-formed.  Insertions are applied back to front
    by byte position, so every other byte of the markup is unchanged.
"""

from __future__ import annotations

import html as html_module
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from marginalia.projection.plain_text import collapsed_to_html_offset

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from marginalia.highlight.ranges import ResolvedRange
    from marginalia.projection.plain_text import PositionMap

logger = logging.getLogger(__name__)

DEFAULT_HIGHLIGHT_TAG = "span"
DEFAULT_HIGHLIGHT_CLASS = "selection-highlight"


@dataclass(frozen=True)
class RenderFailure:
    """A highlight that could not be placed; the comment is still listed."""

    annotation_id: str
    reason: str
    render_failed: bool = True


@dataclass(frozen=True)
class HighlightOutput:
    """Markup with wrappers, plus what was placed and what failed.

    Attributes:
        markup: Highlighted markup.
        placed: Annotation id -> wrapper keys it appears in.
        failures: One entry per annotation whose highlight was omitted.
    """

    markup: str
    placed: dict[str, tuple[str, ...]] = field(default_factory=dict)
    failures: tuple[RenderFailure, ...] = ()


class _Desync(Exception):
    """Position map does not describe the markup being rendered."""


def _slices(
    rng: ResolvedRange, position_map: PositionMap, markup: str
) -> list[tuple[int, int]]:
    """Return ``(html_start, html_end)`` for each text-node slice of *rng*.

    Raises:
        _Desync: The range lies outside the plain text, or a text node it
            touches is not where the map says it is in *markup*.
    """
    if rng.start < 0 or rng.end > len(position_map.plain_text):
        msg = f"range {rng.start}-{rng.end} outside plain text"
        raise _Desync(msg)

    pieces: list[tuple[int, int]] = []
    for node in position_map.nodes_between(rng.start, rng.end):
        located_text = markup[node.html_start : node.html_end]
        if not node.located or located_text != node.html_text:
            msg = f"text node {node.node_index} not found at offset {node.html_start}"
            raise _Desync(msg)
        lo = max(rng.start, node.char_start) - node.char_start
        hi = min(rng.end, node.char_end) - node.char_start
        html_lo = collapsed_to_html_offset(node.html_text, node.decoded_text, lo)
        html_hi = collapsed_to_html_offset(node.html_text, node.decoded_text, hi)
        if html_hi > html_lo:
            pieces.append((node.html_start + html_lo, node.html_start + html_hi))
    return pieces


def _build_wrapper(
    rng: ResolvedRange,
    *,
    tag: str,
    css_class: str,
    is_new: bool,
) -> tuple[str, str]:
    """Build opening and closing wrapper tags for a range.

    Returns ``(open_tag, close_tag)``.
    """
    ids = html_module.escape(",".join(rng.annotation_ids), quote=True)
    open_tag = (
        f'<{tag} class="{html_module.escape(css_class, quote=True)}"'
        f' data-annotation-ids="{ids}"'
        f' data-annotation-count="{len(rng.annotation_ids)}"'
        f' data-highlight-key="{rng.key}"'
        ' tabindex="0" role="button"'
    )
    if is_new:
        open_tag += ' data-new="true"'
    open_tag += ">"
    return open_tag, f"</{tag}>"


def _apply_insertions(markup: str, insertions: list[tuple[int, str]]) -> str:
    """Apply ``(position, text)`` insertions back to front.

    At the same position closing tags go before opening tags, so adjacent
    ranges come out as ``</span><span ...>``.
    """

    def sort_key(item: tuple[int, str]) -> tuple[int, bool]:
        pos, text = item
        return (pos, text.startswith("</"))

    insertions.sort(key=sort_key, reverse=True)

    parts: list[str] = []
    cursor = len(markup)
    same_pos_buffer: list[str] = []
    prev_pos: int | None = None

    for pos, text in insertions:
        if prev_pos is not None and pos != prev_pos:
            parts.append(markup[prev_pos:cursor])
            parts.append("".join(same_pos_buffer))
            cursor = prev_pos
            same_pos_buffer = []
        same_pos_buffer.append(text)
        prev_pos = pos

    if prev_pos is not None:
        parts.append(markup[prev_pos:cursor])
        parts.append("".join(same_pos_buffer))
        cursor = prev_pos

    parts.append(markup[:cursor])
    return "".join(reversed(parts))


def insert_highlights(
    markup: str,
    ranges: Sequence[ResolvedRange],
    position_map: PositionMap,
    *,
    new_ids: Collection[str] = frozenset(),
    tag: str = DEFAULT_HIGHLIGHT_TAG,
    css_class: str = DEFAULT_HIGHLIGHT_CLASS,
) -> HighlightOutput:
    """Wrap each resolved range of *markup* in highlight elements.

    Ranges are handled rightmost first.  A range whose nodes cannot be found
    in *markup* is skipped and every annotation it carries is reported as a
    ``RenderFailure``; those annotations are then dropped from all of their
    other ranges too, so a comment is either fully highlighted or not at all.

    Args:
        markup: The stored original markup.
        ranges: Output of ``resolve_ranges``.
        position_map: Map projected from this same *markup*.
        new_ids: Annotations to flag with ``data-new="true"`` (pulse).
        tag: Wrapper element name.
        css_class: Wrapper class attribute.
    """
    if not ranges or not markup:
        return HighlightOutput(markup=markup)

    ordered = sorted(ranges, key=lambda r: r.start, reverse=True)

    # Pass 1: locate slices; collect annotations touched by any desync
    located: list[tuple[ResolvedRange, list[tuple[int, int]]]] = []
    failed: dict[str, str] = {}
    for rng in ordered:
        try:
            located.append((rng, _slices(rng, position_map, markup)))
        except _Desync as exc:
            logger.warning(
                "Cannot place highlight %s for %s: %s",
                rng.key,
                ", ".join(rng.annotation_ids),
                exc,
            )
            for annotation_id in rng.annotation_ids:
                failed.setdefault(annotation_id, str(exc))

    # Pass 2: build insertions for the annotations that survived
    insertions: list[tuple[int, str]] = []
    placed: dict[str, list[str]] = {}
    for rng, pieces in located:
        live_ids = tuple(i for i in rng.annotation_ids if i not in failed)
        if not live_ids or not pieces:
            continue
        if live_ids != rng.annotation_ids:
            rng = replace(rng, annotation_ids=live_ids)
        is_new = any(i in new_ids for i in live_ids)
        open_tag, close_tag = _build_wrapper(
            rng, tag=tag, css_class=css_class, is_new=is_new
        )
        for start_byte, end_byte in pieces:
            insertions.append((end_byte, close_tag))
            insertions.append((start_byte, open_tag))
        for annotation_id in live_ids:
            placed.setdefault(annotation_id, []).append(rng.key)

    # Annotations whose every range covered only gap characters (e.g. <br>)
    for rng in ordered:
        for annotation_id in rng.annotation_ids:
            if annotation_id not in placed and annotation_id not in failed:
                failed[annotation_id] = "range covers no visible text"

    failures = tuple(
        RenderFailure(annotation_id=i, reason=reason) for i, reason in failed.items()
    )
    return HighlightOutput(
        markup=_apply_insertions(markup, insertions),
        placed={i: tuple(reversed(keys)) for i, keys in placed.items()},
        failures=failures,
    )
