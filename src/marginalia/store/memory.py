"""In-memory stores for tests and the command-line tools.

Implements ``CommentStoreProtocol`` and ``ContentStoreProtocol`` without
any backing service.  Writes can be made to fail on demand to exercise
persistence-error handling.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from marginalia.errors import AnnotationNotFound, DocumentNotFound
from marginalia.models import Annotation, Document

if TYPE_CHECKING:
    from marginalia.models import Anchor

logger = logging.getLogger(__name__)


class InMemoryCommentStore:
    """Dict-backed implementation of ``CommentStoreProtocol``.

    Records keep insertion order, which is also creation order.
    """

    def __init__(self, annotations: list[Annotation] | None = None) -> None:
        self._records: dict[str, Annotation] = {}
        self._pending_failures: list[Exception] = []
        for annotation in annotations or []:
            self._records[annotation.id] = annotation

    def fail_next_write(self, exc: Exception | None = None) -> None:
        """Make the next create/update/delete raise *exc*."""
        self._pending_failures.append(exc or ConnectionError("comment store offline"))

    def _check_write(self) -> None:
        if self._pending_failures:
            raise self._pending_failures.pop(0)

    def _get(self, annotation_id: str) -> Annotation:
        try:
            return self._records[annotation_id]
        except KeyError:
            raise AnnotationNotFound(annotation_id) from None

    async def list_annotations(self, document_id: str) -> list[Annotation]:
        return [
            a
            for a in self._records.values()
            if a.document_id == document_id and not a.is_reply
        ]

    async def create_annotation(
        self,
        document_id: str,
        author_id: str,
        body: str,
        anchor: Anchor | None,
    ) -> Annotation:
        self._check_write()
        annotation = Annotation(
            id=str(uuid4()),
            document_id=document_id,
            author_id=author_id,
            body=body,
            anchor=anchor,
        )
        self._records[annotation.id] = annotation
        logger.debug("Created annotation %s on %s", annotation.id, document_id)
        return annotation

    async def update_annotation_body(self, annotation_id: str, body: str) -> Annotation:
        self._check_write()
        updated = self._get(annotation_id).model_copy(
            update={"body": body, "edited_at": datetime.now(UTC)}
        )
        self._records[annotation_id] = updated
        return updated

    async def delete_annotation(self, annotation_id: str) -> None:
        self._check_write()
        self._get(annotation_id)
        del self._records[annotation_id]
        for reply_id in [
            a.id for a in self._records.values() if a.parent_id == annotation_id
        ]:
            del self._records[reply_id]

    async def list_replies(self, annotation_id: str) -> list[Annotation]:
        return [a for a in self._records.values() if a.parent_id == annotation_id]

    async def create_reply(
        self, parent_id: str, author_id: str, body: str
    ) -> Annotation:
        self._check_write()
        parent = self._get(parent_id)
        reply = Annotation(
            id=str(uuid4()),
            document_id=parent.document_id,
            author_id=author_id,
            body=body,
            parent_id=parent.id,
        )
        self._records[reply.id] = reply
        return reply


class InMemoryContentStore:
    """Dict-backed implementation of ``ContentStoreProtocol``."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}

    def put(self, document_id: str, markup: str) -> Document:
        """Store *markup* as the next version of *document_id*."""
        previous = self._documents.get(document_id)
        version = previous.version + 1 if previous else 1
        document = Document(id=document_id, markup=markup, version=version)
        self._documents[document_id] = document
        return document

    async def get_document(self, document_id: str) -> Document:
        try:
            return self._documents[document_id]
        except KeyError:
            raise DocumentNotFound(document_id) from None
