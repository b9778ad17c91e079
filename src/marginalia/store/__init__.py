"""External store protocols and in-memory implementations."""

from marginalia.store.memory import InMemoryCommentStore, InMemoryContentStore
from marginalia.store.protocol import CommentStoreProtocol, ContentStoreProtocol

__all__ = [
    "CommentStoreProtocol",
    "ContentStoreProtocol",
    "InMemoryCommentStore",
    "InMemoryContentStore",
]
