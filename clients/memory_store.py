"""
In-process document store.

Implements the DocumentStore contract over plain dicts. Used for tests and
single-process development; documents are deep-copied on the way in and out
so callers never share mutable state with the store.
"""

import copy
import threading
from typing import Any
from uuid import uuid4

from clients.document_store import (
    Document,
    DuplicateKeyError,
    FILTER_OPERATORS,
    UPDATE_OPERATORS,
)

_MISSING = object()


def _compare(op: str, value: Any, operand: Any) -> bool:
    """Ordered comparison. Missing, null, or incomparable values never match."""
    if value is _MISSING or value is None:
        return False
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        return value <= operand
    except TypeError:
        return False


def _condition_matches(value: Any, condition: Any) -> bool:
    """Check a single field value against a literal or operator condition."""
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            if op not in FILTER_OPERATORS:
                raise ValueError(f"Unsupported filter operator: {op}")
            if op == "$exists":
                if (value is not _MISSING) != bool(operand):
                    return False
            elif op == "$ne":
                if value is not _MISSING and value == operand:
                    return False
            elif op == "$in":
                if value is _MISSING or value not in operand:
                    return False
            elif not _compare(op, value, operand):
                return False
        return True

    # {field: None} matches both null and missing, as in MongoDB
    if condition is None:
        return value is _MISSING or value is None
    return value is not _MISSING and value == condition


def matches(document: Document, filter: Document) -> bool:
    """Return True if document satisfies every clause of filter."""
    for field, condition in filter.items():
        if not _condition_matches(document.get(field, _MISSING), condition):
            return False
    return True


def apply_update(document: Document, update: Document) -> None:
    """Apply an operator update to document in place."""
    if not update or not all(k.startswith("$") for k in update):
        raise ValueError("Update must use operators ($set, $unset, $inc)")

    for op, fields in update.items():
        if op not in UPDATE_OPERATORS:
            raise ValueError(f"Unsupported update operator: {op}")
        for field, value in fields.items():
            if field == "_id":
                raise ValueError("_id is immutable")
            if op == "$set":
                document[field] = copy.deepcopy(value)
            elif op == "$unset":
                document.pop(field, None)
            else:
                document[field] = document.get(field, 0) + value


class InMemoryDocumentStore:
    """
    Thread-safe dict-backed document store.

    Unique indexes are enforced on insert and update the way MongoDB
    enforces them: a missing field counts as null.

    Usage:
        store = InMemoryDocumentStore()
        store.ensure_indexes()
        user_id = store.insert_one("users", {"email": "a@x.com"})
        store.update_one("users", {"_id": user_id}, {"$set": {"role": "admin"}})
    """

    def __init__(self):
        self._collections: dict[str, list[Document]] = {}
        self._unique: dict[str, list[tuple[str, ...]]] = {}
        self._lock = threading.RLock()

    def _collection(self, name: str) -> list[Document]:
        return self._collections.setdefault(name, [])

    def create_unique_index(self, collection: str, *fields: str) -> None:
        """Reject writes that repeat the combined value of fields. Idempotent."""
        with self._lock:
            indexes = self._unique.setdefault(collection, [])
            if fields not in indexes:
                indexes.append(fields)

    def ensure_indexes(self) -> None:
        """Same unique constraints as MongoDocumentStore.ensure_indexes."""
        self.create_unique_index("users", "email")
        self.create_unique_index("login_attempts", "email", "ip_address")

    def _check_unique(
        self, collection: str, candidate: Document, ignore: Document | None = None
    ) -> None:
        docs = self._collection(collection)
        for other in docs:
            if other is not ignore and other["_id"] == candidate["_id"]:
                raise DuplicateKeyError(f"Duplicate _id in {collection}: {candidate['_id']}")
        for fields in self._unique.get(collection, []):
            key = tuple(candidate.get(f) for f in fields)
            for other in docs:
                if other is not ignore and tuple(other.get(f) for f in fields) == key:
                    raise DuplicateKeyError(
                        f"Duplicate key in {collection} on {', '.join(fields)}: {key}"
                    )

    def find_one(self, collection: str, filter: Document) -> Document | None:
        with self._lock:
            for document in self._collection(collection):
                if matches(document, filter):
                    return copy.deepcopy(document)
        return None

    def find(
        self,
        collection: str,
        filter: Document,
        sort: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        with self._lock:
            results = [
                copy.deepcopy(d) for d in self._collection(collection) if matches(d, filter)
            ]

        if sort is not None:
            # Missing and null sort first ascending, last descending, as in MongoDB
            present = [d for d in results if d.get(sort) is not None]
            absent = [d for d in results if d.get(sort) is None]
            present.sort(key=lambda d: d[sort], reverse=descending)
            results = present + absent if descending else absent + present

        if limit:
            results = results[:limit]
        return results

    def insert_one(self, collection: str, document: Document) -> str:
        stored = copy.deepcopy(document)
        stored.setdefault("_id", str(uuid4()))
        with self._lock:
            self._check_unique(collection, stored)
            self._collection(collection).append(stored)
        return stored["_id"]

    def update_one(self, collection: str, filter: Document, update: Document) -> int:
        with self._lock:
            for document in self._collection(collection):
                if matches(document, filter):
                    updated = copy.deepcopy(document)
                    apply_update(updated, update)
                    self._check_unique(collection, updated, ignore=document)
                    document.clear()
                    document.update(updated)
                    return 1
        return 0

    def delete_one(self, collection: str, filter: Document) -> int:
        with self._lock:
            docs = self._collection(collection)
            for index, document in enumerate(docs):
                if matches(document, filter):
                    del docs[index]
                    return 1
        return 0

    def delete_many(self, collection: str, filter: Document) -> int:
        with self._lock:
            docs = self._collection(collection)
            kept = [d for d in docs if not matches(d, filter)]
            deleted = len(docs) - len(kept)
            self._collections[collection] = kept
        return deleted

    def count(self, collection: str, filter: Document | None = None) -> int:
        """Number of documents matching filter (all when filter is None)."""
        with self._lock:
            return sum(1 for d in self._collection(collection) if matches(d, filter or {}))
