"""Plain-text projection of markup and selection resolution."""

from marginalia.projection.plain_text import (
    PositionMap,
    Projection,
    TextNodeInfo,
    extract_text_from_html,
    project_plain_text,
)
from marginalia.projection.selection import (
    AnchorCandidate,
    Selection,
    SelectionPoint,
    capture_selection,
    resolve_selection,
)

__all__ = [
    "AnchorCandidate",
    "PositionMap",
    "Projection",
    "Selection",
    "SelectionPoint",
    "TextNodeInfo",
    "capture_selection",
    "extract_text_from_html",
    "project_plain_text",
    "resolve_selection",
]
