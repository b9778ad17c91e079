"""Exception hierarchy for the annotation engine.

Failures are always scoped to one selection, annotation or range; none of
these is allowed to abort rendering of a document's content.  Drift
staleness is deliberately absent: it is an outcome (``DriftStatus.STALE``),
not an error.
"""

from __future__ import annotations


class AnnotationError(Exception):
    """Base class for annotation engine errors."""


class CaptureError(AnnotationError):
    """A selection could not be turned into an anchor.

    Recovered locally: the capture UI declines to open and nothing is
    persisted.
    """


class SelectionEmpty(CaptureError):
    """The selection is collapsed or contains only whitespace."""


class SelectionOutsideContent(CaptureError):
    """The selection is not inside the document's content region."""


class SelectionTooShort(CaptureError):
    """The selection is shorter than the configured minimum length."""

    def __init__(self, length: int, minimum: int) -> None:
        self.length = length
        self.minimum = minimum
        super().__init__(
            f"Selection of {length} characters is shorter than the minimum {minimum}"
        )


class BoundaryUnresolvable(CaptureError):
    """A selection boundary names a node missing from the position map."""

    def __init__(self, node_index: int, offset: int) -> None:
        self.node_index = node_index
        self.offset = offset
        super().__init__(
            f"Selection boundary (node {node_index}, offset {offset}) "
            "is not in this document's position map"
        )


class PersistenceError(AnnotationError):
    """The Comment Store rejected or failed a write.

    No local annotation state is considered committed until the store
    confirms it, so the operation can be retried as-is.
    """

    def __init__(self, operation: str, *, retryable: bool = True) -> None:
        self.operation = operation
        self.retryable = retryable
        super().__init__(f"Comment store failed during {operation}")


class AnnotationNotFound(AnnotationError):
    """No annotation with the given id exists in the store."""

    def __init__(self, annotation_id: str) -> None:
        self.annotation_id = annotation_id
        super().__init__(f"Annotation {annotation_id!r} not found")


class DocumentNotFound(AnnotationError):
    """No document with the given id exists in the content store."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id!r} not found")
