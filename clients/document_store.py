"""
Document store contract shared by the persistence backends.

Filters and updates use the MongoDB operator vocabulary. Every backend must
honour the same subset so the auth core behaves identically on each:

    Filter operators: $gt, $gte, $lt, $lte, $ne, $in, $exists
    Update operators: $set, $unset, $inc
"""

from typing import Any, Protocol

Document = dict[str, Any]

FILTER_OPERATORS = frozenset({"$gt", "$gte", "$lt", "$lte", "$ne", "$in", "$exists"})
UPDATE_OPERATORS = frozenset({"$set", "$unset", "$inc"})


class DocumentStoreError(Exception):
    """Raised when a document store operation fails."""


class DuplicateKeyError(DocumentStoreError):
    """Raised when a write would violate a unique index."""


class DocumentStore(Protocol):
    """Minimal collection-oriented persistence interface."""

    def ensure_indexes(self) -> None:
        """Create the unique and lookup indexes the auth core relies on. Idempotent."""
        ...

    def find_one(self, collection: str, filter: Document) -> Document | None:
        """Return the first matching document, or None."""
        ...

    def find(
        self,
        collection: str,
        filter: Document,
        sort: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """Return matching documents, optionally sorted by one field and limited."""
        ...

    def insert_one(self, collection: str, document: Document) -> str:
        """Insert document and return its _id (generated when absent).

        Raises DuplicateKeyError if a unique index already holds the same key.
        """
        ...

    def update_one(self, collection: str, filter: Document, update: Document) -> int:
        """Apply update to the first match. Returns matched count (0 or 1).

        Raises DuplicateKeyError if the update would collide on a unique index.
        """
        ...

    def delete_one(self, collection: str, filter: Document) -> int:
        """Delete the first match. Returns deleted count (0 or 1)."""
        ...

    def delete_many(self, collection: str, filter: Document) -> int:
        """Delete every match. Returns deleted count."""
        ...
