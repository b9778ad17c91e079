"""Shared pytest fixtures for marginalia tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from marginalia.config import AnnotationConfig
from marginalia.models import Anchor, Annotation
from marginalia.store.memory import InMemoryCommentStore, InMemoryContentStore

DOCUMENT_ID = "post-1"
AUTHOR_ID = "user-1"

ALPHA_MARKUP = "<p>Alpha Beta Gamma</p>"
FORMATTED_MARKUP = "<p>Alpha <b>Beta</b> Gamma</p>"

_BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_annotation(
    annotation_id: str,
    start: int | None = None,
    end: int | None = None,
    quoted_text: str | None = None,
    *,
    body: str = "comment",
    minutes: int = 0,
    parent_id: str | None = None,
    document_id: str = DOCUMENT_ID,
) -> Annotation:
    """Build an annotation; pass start/end/quoted_text for an anchored one."""
    anchor = None
    if start is not None and end is not None:
        anchor = Anchor(start=start, end=end, quoted_text=quoted_text or "x")
    return Annotation(
        id=annotation_id,
        document_id=document_id,
        author_id=AUTHOR_ID,
        body=body,
        anchor=anchor,
        created_at=_BASE_TIME + timedelta(minutes=minutes),
        parent_id=parent_id,
    )


@pytest.fixture
def annotation_factory():
    """Factory for annotations; see ``make_annotation``."""
    return make_annotation


@pytest.fixture
def config() -> AnnotationConfig:
    return AnnotationConfig()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    store = InMemoryContentStore()
    store.put(DOCUMENT_ID, ALPHA_MARKUP)
    return store


@pytest.fixture
def comment_store() -> InMemoryCommentStore:
    return InMemoryCommentStore()
