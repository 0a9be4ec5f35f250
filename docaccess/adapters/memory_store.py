"""
In-memory storage adapter.

Implements StorageAccessorPort over a list of dicts. Used by tests and for
running services without a database.

Key behaviors:
- Documents are deep-copied on the way in and out
- Natural order is insertion order
- Generated ids are ObjectIds; duplicate ids raise DuplicateKeyError
- Every write is validated by encoding the result as BSON, so values the
  real store rejects are rejected here too (ParseError)
- An update is applied to a copy and only swapped in once it succeeds
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import bson
from bson import ObjectId
from bson.errors import InvalidDocument
from pymongo.errors import DuplicateKeyError

from docaccess.core.errors import ParseError
from docaccess.core.ports import Document, Filter, SortSpec

from ._query import apply_update, matches, project, sort_documents, upsert_seed, values_equal

logger = logging.getLogger(__name__)


def _check_encodable(document: Document) -> None:
    try:
        bson.encode(document)
    except (InvalidDocument, OverflowError, TypeError) as e:
        raise ParseError(f"Document cannot be stored: {e}") from e


class InMemoryStorage:
    """In-memory collection for testing/dev."""

    def __init__(self, documents: Sequence[Mapping[str, Any]] | None = None) -> None:
        self._documents: list[Document] = []
        for document in documents or ():
            self.insert_one(dict(document))

    def __len__(self) -> int:
        return len(self._documents)

    def all(self) -> list[Document]:
        """Snapshot of every stored document, in natural order."""
        return copy.deepcopy(self._documents)

    def _index_of(self, doc_id: Any) -> int | None:
        for index, document in enumerate(self._documents):
            if values_equal(document.get("_id"), doc_id):
                return index
        return None

    def _add(self, document: Document) -> Any:
        if "_id" not in document:
            document["_id"] = ObjectId()
        _check_encodable(document)
        if self._index_of(document["_id"]) is not None:
            raise DuplicateKeyError(
                f"E11000 duplicate key error dup key: {{ _id: {document['_id']!r} }}",
                code=11000,
            )
        self._documents.append(document)
        return document["_id"]

    # --- StorageAccessorPort ---

    def find_many(
        self,
        filter: Filter,
        sort: SortSpec,
        limit: int,
        skip: int = 0,
    ) -> list[Document]:
        found = [d for d in self._documents if matches(d, filter)]
        if sort:
            found = sort_documents(found, sort)
        end = skip + limit if limit > 0 else None
        return copy.deepcopy(found[skip:end])

    def find_one(
        self,
        filter: Filter,
        projection: Mapping[str, Any] | None = None,
    ) -> Document | None:
        for document in self._documents:
            if matches(document, filter):
                return project(document, projection)
        return None

    def insert_one(self, document: Document) -> Any:
        return self._add(copy.deepcopy(document))

    def insert_many(self, documents: Sequence[Document]) -> list[Any]:
        inserted: list[Any] = []
        for index, document in enumerate(documents):
            try:
                inserted.append(self._add(copy.deepcopy(document)))
            except (DuplicateKeyError, ParseError) as e:
                logger.warning("insert_many: document %d not written: %s", index, e)
        return inserted

    def update_one(
        self,
        filter: Filter,
        update: Mapping[str, Any],
        upsert: bool = False,
    ) -> int:
        if not update or not all(key.startswith("$") for key in update):
            raise ValueError("update only works with $ operators")

        for index, document in enumerate(self._documents):
            if not matches(document, filter):
                continue
            updated = copy.deepcopy(document)
            apply_update(updated, update, filter)
            if not values_equal(updated.get("_id"), document.get("_id")):
                raise ValueError("Performing an update on the path '_id' would modify the immutable field '_id'")
            _check_encodable(updated)
            self._documents[index] = updated
            return 1

        if upsert:
            created = upsert_seed(filter)
            apply_update(created, update, filter, inserting=True)
            self._add(created)
        return 0

    def delete_one(self, filter: Filter) -> int:
        for index, document in enumerate(self._documents):
            if matches(document, filter):
                del self._documents[index]
                return 1
        return 0
