"""Focus synchronisation between inline highlights and comment cards.

The content view and the comment list never talk to each other directly.
Each subscribes to its own channel here and only learns "focus changed to
X"; the side that did not originate the change is asked to scroll to and
pulse its element for X.

State machine::

    Idle --activate(a)--> Focused(a) --activate(b)--> Focused(b)
    Focused(*) --dismiss()--> Idle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)


class FocusOrigin(StrEnum):
    """Where a focus change came from."""

    HIGHLIGHT = "highlight"
    COMMENT = "comment"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class FocusRequest:
    """What a subscriber should do after a focus change.

    Attributes:
        annotation_id: Newly focused annotation, or None when focus cleared.
        highlight_keys: Wrapper keys carrying the annotation in the last render.
        origin: Which side triggered the change.
        scroll: Bring the element into view.
        pulse: Run the transient focus pulse.
    """

    annotation_id: str | None
    highlight_keys: tuple[str, ...]
    origin: FocusOrigin
    scroll: bool = False
    pulse: bool = False


class FocusCoordinator:
    """Maps annotation ids to highlight keys and tracks the focused annotation."""

    def __init__(self) -> None:
        self._focused_id: str | None = None
        self._keys_by_annotation: dict[str, tuple[str, ...]] = {}
        self._annotations_by_key: dict[str, tuple[str, ...]] = {}
        self._content_listeners: list[Callable[[FocusRequest], None]] = []
        self._comment_listeners: list[Callable[[FocusRequest], None]] = []

    @property
    def focused_id(self) -> str | None:
        return self._focused_id

    # --- Mapping ---

    def bind(self, placements: Mapping[str, Iterable[str]]) -> None:
        """Replace the id ⇄ key mapping with the placements of the latest render.

        Args:
            placements: Annotation id -> wrapper keys displaying it.
        """
        by_key: dict[str, list[str]] = {}
        for annotation_id, keys in placements.items():
            for key in keys:
                by_key.setdefault(key, []).append(annotation_id)
        self._keys_by_annotation = {
            i: tuple(keys) for i, keys in placements.items()
        }
        self._annotations_by_key = {k: tuple(ids) for k, ids in by_key.items()}

    def highlight_keys_for(self, annotation_id: str) -> tuple[str, ...]:
        """Wrapper keys that display *annotation_id* (empty if unplaced)."""
        return self._keys_by_annotation.get(annotation_id, ())

    def annotations_for(self, highlight_key: str) -> tuple[str, ...]:
        """Annotation ids stacked on the wrapper *highlight_key*."""
        return self._annotations_by_key.get(highlight_key, ())

    # --- Subscriptions ---

    def subscribe_content_view(
        self, listener: Callable[[FocusRequest], None]
    ) -> Callable[[], None]:
        """Register the content view; returns an unsubscribe callable."""
        self._content_listeners.append(listener)
        return lambda: self._unsubscribe(self._content_listeners, listener)

    def subscribe_comment_list(
        self, listener: Callable[[FocusRequest], None]
    ) -> Callable[[], None]:
        """Register the comment list; returns an unsubscribe callable."""
        self._comment_listeners.append(listener)
        return lambda: self._unsubscribe(self._comment_listeners, listener)

    @staticmethod
    def _unsubscribe(
        listeners: list[Callable[[FocusRequest], None]],
        listener: Callable[[FocusRequest], None],
    ) -> None:
        if listener in listeners:
            listeners.remove(listener)

    # --- Activation ---

    def on_highlight_activated(self, annotation_id: str) -> None:
        """An inline wrapper was clicked or keyboard-activated."""
        self._set_focus(annotation_id, FocusOrigin.HIGHLIGHT)

    def on_comment_activated(self, annotation_id: str) -> None:
        """A comment card was clicked."""
        self._set_focus(annotation_id, FocusOrigin.COMMENT)

    def dismiss(self) -> None:
        """Clear focus (outside click or explicit dismissal)."""
        if self._focused_id is None:
            return
        self._focused_id = None
        request = FocusRequest(None, (), FocusOrigin.DISMISS)
        self._notify(self._content_listeners, request)
        self._notify(self._comment_listeners, request)

    def forget(self, annotation_id: str) -> None:
        """Drop focus if *annotation_id* was deleted."""
        if self._focused_id == annotation_id:
            self.dismiss()

    def _set_focus(self, annotation_id: str, origin: FocusOrigin) -> None:
        logger.debug(
            "Focus %s -> %s (from %s)", self._focused_id, annotation_id, origin
        )
        self._focused_id = annotation_id
        keys = self.highlight_keys_for(annotation_id)
        from_highlight = origin is FocusOrigin.HIGHLIGHT
        self._notify(
            self._comment_listeners,
            FocusRequest(
                annotation_id,
                keys,
                origin,
                scroll=from_highlight,
                pulse=from_highlight,
            ),
        )
        self._notify(
            self._content_listeners,
            FocusRequest(
                annotation_id,
                keys,
                origin,
                scroll=not from_highlight,
                pulse=not from_highlight,
            ),
        )

    @staticmethod
    def _notify(
        listeners: list[Callable[[FocusRequest], None]], request: FocusRequest
    ) -> None:
        """Deliver *request* to every listener; one failure cannot block others."""
        for listener in list(listeners):
            try:
                listener(request)
            except Exception:
                logger.exception("Focus listener %r failed", listener)
