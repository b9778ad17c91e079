"""Re-anchor stored ranges against the current plain text.

Edits elsewhere in a post shift absolute offsets but rarely change the
quoted phrase itself, so a stored ``(start, end, quoted_text)`` is checked
in place first, then searched for near its old position, then anywhere.

Tie-break policy: when the quoted text occurs more than once inside the
search window, the occurrence whose start is nearest the stored ``start``
wins (absolute distance; equal distances go to the earlier occurrence).
The whole-document fallback takes the first occurrence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from marginalia.config import DEFAULT_DRIFT_WINDOW

if TYPE_CHECKING:
    from collections.abc import Iterator

    from marginalia.models import Anchor

logger = logging.getLogger(__name__)


class DriftStatus(StrEnum):
    """Outcome of checking one anchor against current text."""

    VALID = "valid"
    CORRECTED = "corrected"
    STALE = "stale"


@dataclass(frozen=True)
class DriftResult:
    """Render-time position of an anchor.

    ``start``/``end`` are None only for ``STALE``.  The stored anchor is
    never modified.
    """

    status: DriftStatus
    start: int | None = None
    end: int | None = None

    @property
    def is_stale(self) -> bool:
        return self.status is DriftStatus.STALE


def _occurrences(text: str, needle: str, lo: int, hi: int) -> Iterator[int]:
    """Yield start offsets of *needle* lying wholly inside ``text[lo:hi]``."""
    idx = text.find(needle, lo, hi)
    while idx != -1:
        yield idx
        idx = text.find(needle, idx + 1, hi)


def correct_drift(
    anchor: Anchor,
    plain_text: str,
    window: int = DEFAULT_DRIFT_WINDOW,
) -> DriftResult:
    """Check *anchor* against *plain_text* and relocate it if it drifted.

    Args:
        anchor: The stored anchor.
        plain_text: Projector output for the current markup.
        window: Characters searched either side of the stored range before
            falling back to the whole text.

    Returns:
        ``VALID`` with the stored offsets, ``CORRECTED`` with new offsets, or
        ``STALE`` when the quoted text is nowhere in *plain_text*.
    """
    quoted = anchor.quoted_text
    length = len(quoted)

    if plain_text[anchor.start : anchor.end] == quoted:
        return DriftResult(DriftStatus.VALID, anchor.start, anchor.end)

    lo = max(anchor.start - window, 0)
    hi = min(anchor.end + window, len(plain_text))
    nearby = list(_occurrences(plain_text, quoted, lo, hi))
    if nearby:
        best = min(nearby, key=lambda pos: (abs(pos - anchor.start), pos))
        logger.debug(
            "Anchor %d-%d drifted to %d within window (%d candidates)",
            anchor.start,
            anchor.end,
            best,
            len(nearby),
        )
        return DriftResult(DriftStatus.CORRECTED, best, best + length)

    found = plain_text.find(quoted)
    if found != -1:
        logger.debug(
            "Anchor %d-%d relocated to %d by whole-text search",
            anchor.start,
            anchor.end,
            found,
        )
        return DriftResult(DriftStatus.CORRECTED, found, found + length)

    logger.info(
        "Anchor %d-%d is stale: quoted text not found", anchor.start, anchor.end
    )
    return DriftResult(DriftStatus.STALE)
