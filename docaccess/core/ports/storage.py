"""
Storage accessor port.

The narrow contract the data access layer requires from a document store.
Filters, sorts and updates use the MongoDB query language; the core only
emits this subset:

Filters:
- equality on (dotted) paths, matching array elements through the path
- $and, $or
- $gt, $gte, $lt, $lte, $ne, $in, $nin, $exists
- $regex with $options

Updates:
- $set (dotted paths, positional `field.$.sub`)
- $setOnInsert (upserts only)
- $push with $each
- $pull with a condition document

Projections:
- {field: 1} inclusion
- {field: {"$slice": [skip, limit]}}

Implementations: InMemoryStorage (tests/dev), MongoStorage (pymongo).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

Document = dict[str, Any]
Filter = Mapping[str, Any]
SortSpec = Sequence[tuple[str, int]]


class StorageAccessorPort(Protocol):
    """Primitive operations on one collection."""

    def find_many(
        self,
        filter: Filter,
        sort: SortSpec,
        limit: int,
        skip: int = 0,
    ) -> list[Document]:
        """Return up to `limit` documents in `sort` order after skipping `skip`."""
        ...

    def find_one(
        self,
        filter: Filter,
        projection: Mapping[str, Any] | None = None,
    ) -> Document | None:
        """Return the first matching document, or None."""
        ...

    def insert_one(self, document: Document) -> Any:
        """Insert and return the stored id (generated when absent)."""
        ...

    def insert_many(self, documents: Sequence[Document]) -> list[Any]:
        """
        Insert documents independently.

        A failing document does not abort the others; only ids of documents
        actually written are returned.
        """
        ...

    def update_one(
        self,
        filter: Filter,
        update: Mapping[str, Any],
        upsert: bool = False,
    ) -> int:
        """Apply `update` to the first match; return the matched count."""
        ...

    def delete_one(self, filter: Filter) -> int:
        """Delete the first match; return the deleted count."""
        ...
