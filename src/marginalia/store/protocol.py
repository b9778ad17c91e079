"""Protocols for the external stores the engine consumes.

Post and comment persistence live outside this package.  Any backend
(HTTP API, database, in-memory fake) that satisfies these protocols can
be handed to ``AnnotationSession``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from marginalia.models import Anchor, Annotation, Document


class CommentStoreProtocol(Protocol):
    """Persistence for annotations and their replies."""

    async def list_annotations(self, document_id: str) -> list[Annotation]:
        """Return the document's top-level annotations in creation order."""
        ...

    async def create_annotation(
        self,
        document_id: str,
        author_id: str,
        body: str,
        anchor: Anchor | None,
    ) -> Annotation:
        """Persist a new top-level annotation.

        Args:
            document_id: Document being commented on.
            author_id: Commenting user.
            body: Comment text.
            anchor: Captured range, or None for a whole-document comment.

        Returns:
            The stored annotation with its assigned id.
        """
        ...

    async def update_annotation_body(self, annotation_id: str, body: str) -> Annotation:
        """Replace an annotation's body and stamp ``edited_at``."""
        ...

    async def delete_annotation(self, annotation_id: str) -> None:
        """Delete an annotation (and its replies)."""
        ...

    async def list_replies(self, annotation_id: str) -> list[Annotation]:
        """Return replies to *annotation_id* in creation order."""
        ...

    async def create_reply(
        self, parent_id: str, author_id: str, body: str
    ) -> Annotation:
        """Persist a reply; replies never carry an anchor."""
        ...


class ContentStoreProtocol(Protocol):
    """Read access to stored posts."""

    async def get_document(self, document_id: str) -> Document:
        """Return the current markup and version of *document_id*."""
        ...
