"""Data models for documents, anchors and annotations.

``Anchor`` and ``Annotation`` are pydantic models because they cross the
wire to and from the Comment Store (camelCase on the wire, snake_case in
Python).  ``Document`` is a plain frozen dataclass owned by the Content
Store; the engine never mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Document:
    """A rendered piece of content (a post) as stored.

    Attributes:
        id: Content Store identifier.
        markup: Serialized HTML; immutable for a given version.
        version: Changes whenever the markup is edited.
    """

    id: str
    markup: str
    version: int = 1


class Anchor(BaseModel):
    """Where a comment attaches: plain-text offsets plus the quoted text.

    Offsets index the projector's plain text for the markup as it was when
    the anchor was captured.  ``quoted_text`` is the exact captured substring
    and is what drift correction searches for later.  The match between the
    two is not re-checked here, only at render time.
    """

    model_config = _WIRE_CONFIG

    start: int = Field(ge=0)
    end: int
    quoted_text: str = Field(min_length=1)

    @model_validator(mode="after")
    def _end_after_start(self) -> Self:
        if self.end <= self.start:
            msg = f"anchor end ({self.end}) must be greater than start ({self.start})"
            raise ValueError(msg)
        return self


class Annotation(BaseModel):
    """A user comment, optionally anchored to a text range.

    Top-level annotations without an anchor are whole-document comments.
    Replies (``parent_id`` set) never carry an anchor.  The anchor is never
    mutated after creation; corrected offsets only exist at render time.
    """

    model_config = _WIRE_CONFIG

    id: str
    document_id: str
    author_id: str
    body: str
    anchor: Anchor | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    edited_at: datetime | None = None
    parent_id: str | None = None

    @model_validator(mode="after")
    def _replies_are_unanchored(self) -> Self:
        if self.parent_id is not None and self.anchor is not None:
            msg = "replies cannot carry an anchor"
            raise ValueError(msg)
        return self

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def is_anchored(self) -> bool:
        return self.anchor is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the persisted record shape (camelCase, no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Annotation:
        """Parse a persisted record."""
        return cls.model_validate(data)
