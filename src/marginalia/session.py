"""Per-document annotation session: capture, submit, reconcile, render.

Ties the pure pipeline to the external stores for one document being
viewed.  The session's annotation list is only ever replaced wholesale by
the Comment Store's confirmed list; it never merges locally created
copies, so optimistic state cannot leave duplicate or ghost highlights.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from marginalia.config import get_settings
from marginalia.engine import render_with_highlights
from marginalia.errors import AnnotationError, PersistenceError, SelectionEmpty
from marginalia.focus import FocusCoordinator
from marginalia.projection.plain_text import project_plain_text
from marginalia.projection.selection import capture_selection

T = TypeVar("T")

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from marginalia.config import AnnotationConfig
    from marginalia.engine import RenderResult
    from marginalia.models import Annotation, Document
    from marginalia.projection.plain_text import Projection
    from marginalia.projection.selection import AnchorCandidate, Selection
    from marginalia.store.protocol import (
        CommentStoreProtocol,
        ContentStoreProtocol,
    )

logger = logging.getLogger(__name__)


class AnnotationSession:
    """Annotation state for one document as seen by one reader.

    Attributes:
        document_id: Content Store id of the document.
        focus: Coordinator shared by the content view and comment list.
        annotations: Last confirmed top-level annotations from the store.
        pending: Captured selection awaiting submission, if any.
        last_render: Result of the most recent render.
        list_stale: True when a write was confirmed but the refetch after it
            failed; ``annotations`` predates that write until the next
            successful ``refresh()``.
    """

    def __init__(
        self,
        document_id: str,
        *,
        comment_store: CommentStoreProtocol,
        content_store: ContentStoreProtocol,
        focus: FocusCoordinator | None = None,
        config: AnnotationConfig | None = None,
    ) -> None:
        self.document_id = document_id
        self.focus = focus or FocusCoordinator()
        self.annotations: list[Annotation] = []
        self.pending: AnchorCandidate | None = None
        self.last_render: RenderResult | None = None
        self.list_stale = False
        self._comments = comment_store
        self._content = content_store
        self._config = config or get_settings().annotation
        self._document: Document | None = None
        self._projection: Projection | None = None
        self._pulse_ids: set[str] = set()

    @property
    def document(self) -> Document:
        if self._document is None:
            msg = "Session not loaded; call load() first"
            raise RuntimeError(msg)
        return self._document

    @property
    def projection(self) -> Projection:
        """Projection of the stored markup for the current document version."""
        if self._projection is None:
            self._projection = project_plain_text(
                self.document.markup, document_id=self.document_id
            )
        return self._projection

    @property
    def pulse_ids(self) -> frozenset[str]:
        return frozenset(self._pulse_ids)

    # --- Loading and rendering ---

    async def load(self) -> RenderResult:
        """Fetch the document and its annotations, then render."""
        document = await self._content.get_document(self.document_id)
        if self._document is None or document.version != self._document.version:
            if self._document is not None and self.pending is not None:
                logger.info(
                    "Document %s changed to v%d; abandoning pending capture",
                    self.document_id,
                    document.version,
                )
                self.pending = None
            self._document = document
            self._projection = None
        return await self.refresh()

    async def refresh(self) -> RenderResult:
        """Replace local annotations with the store's list and re-render."""
        self.annotations = await self._store_call(
            "list_annotations", self._comments.list_annotations(self.document_id)
        )
        self.list_stale = False
        return self.render()

    def render(self) -> RenderResult:
        """Render highlights over the stored original markup."""
        live_ids = {a.id for a in self.annotations}
        self._pulse_ids &= live_ids
        result = render_with_highlights(
            self.document.markup,
            self.annotations,
            new_ids=self._pulse_ids,
            config=self._config,
            projection=self.projection,
        )
        self.focus.bind(result.placements)
        if self.focus.focused_id is not None and self.focus.focused_id not in live_ids:
            self.focus.dismiss()
        self.last_render = result
        return result

    def acknowledge_pulse(self, annotation_id: str) -> RenderResult:
        """Clear the "newly created" flag once its pulse has been shown."""
        self._pulse_ids.discard(annotation_id)
        return self.render()

    # --- Capture ---

    def capture(self, selection: Selection) -> AnchorCandidate:
        """Resolve *selection* and hold it as the pending capture.

        Raises:
            CaptureError: The selection cannot be anchored; the capture UI
                should simply not open.
        """
        candidate = capture_selection(
            self.projection.position_map,
            selection,
            min_length=self._config.min_selection_length,
            trim=self._config.trim_selection,
        )
        self.pending = candidate
        return candidate

    def cancel_capture(self) -> None:
        """Abandon the pending capture (navigation or selection cleared)."""
        if self.pending is not None:
            logger.debug("Pending capture %r abandoned", self.pending.text)
        self.pending = None

    # --- Mutations ---

    async def submit(self, author_id: str, body: str) -> Annotation:
        """Persist the pending capture with *body* as its comment.

        The pending capture is only cleared once the store confirms the
        write; on ``PersistenceError`` it is kept so the user can retry.
        """
        if self.pending is None:
            msg = "No pending selection to submit"
            raise SelectionEmpty(msg)
        created = await self._store_call(
            "create_annotation",
            self._comments.create_annotation(
                self.document_id, author_id, body, self.pending.to_anchor()
            ),
        )
        self.pending = None
        self._pulse_ids.add(created.id)
        await self._reconcile("create_annotation")
        return created

    async def comment_on_document(self, author_id: str, body: str) -> Annotation:
        """Persist a whole-document comment (no anchor, never highlighted)."""
        created = await self._store_call(
            "create_annotation",
            self._comments.create_annotation(self.document_id, author_id, body, None),
        )
        await self._reconcile("create_annotation")
        return created

    async def edit(self, annotation_id: str, body: str) -> Annotation:
        """Replace an annotation's body."""
        updated = await self._store_call(
            "update_annotation_body",
            self._comments.update_annotation_body(annotation_id, body),
        )
        await self._reconcile("update_annotation_body")
        return updated

    async def delete(self, annotation_id: str) -> None:
        """Delete an annotation and drop any focus or pulse it held."""
        await self._store_call(
            "delete_annotation", self._comments.delete_annotation(annotation_id)
        )
        self._pulse_ids.discard(annotation_id)
        self.focus.forget(annotation_id)
        await self._reconcile("delete_annotation")

    async def reply(self, parent_id: str, author_id: str, body: str) -> Annotation:
        """Add a reply to a top-level annotation."""
        return await self._store_call(
            "create_reply", self._comments.create_reply(parent_id, author_id, body)
        )

    async def replies(self, annotation_id: str) -> list[Annotation]:
        """Return replies to *annotation_id*."""
        return await self._store_call(
            "list_replies", self._comments.list_replies(annotation_id)
        )

    async def _reconcile(self, operation: str) -> None:
        """Refetch after a confirmed write.

        The write itself already succeeded, so a failed refetch must not be
        reported as a retryable failure of *operation*: retrying would
        duplicate it.  The old list is kept and flagged stale instead.
        """
        try:
            await self.refresh()
        except PersistenceError as exc:
            self.list_stale = True
            logger.warning(
                "%s confirmed for document %s but refetch failed: %s",
                operation,
                self.document_id,
                exc,
            )

    async def _store_call(self, operation: str, call: Awaitable[T]) -> T:
        """Await a store call, wrapping backend failures in PersistenceError."""
        try:
            return await call
        except AnnotationError:
            raise
        except Exception as exc:
            logger.warning("Comment store %s failed: %s", operation, exc)
            raise PersistenceError(operation) from exc
