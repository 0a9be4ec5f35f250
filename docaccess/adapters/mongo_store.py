"""
MongoDB storage adapter.

Implements StorageAccessorPort over a pymongo Collection handed in by the
caller. Client bootstrapping stays with the application.

Key behaviors:
- Datetimes are read back timezone-aware (UTC)
- insert_many uses unordered writes; on BulkWriteError the ids of the
  documents that were written are returned and the failures are logged
- ConnectionFailure -> ServiceConnectionError
- InvalidDocument -> ParseError
- Anything else propagates for the service layer to wrap
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC
from typing import Any

from bson.codec_options import CodecOptions
from bson.errors import InvalidDocument
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, ConnectionFailure

from docaccess.core.errors import ParseError, ServiceConnectionError
from docaccess.core.ports import Document, Filter, SortSpec

logger = logging.getLogger(__name__)


@contextmanager
def _driver_errors(collection_name: str) -> Iterator[None]:
    try:
        yield
    except ConnectionFailure as e:
        raise ServiceConnectionError(
            f"Unable to connect to collection {collection_name}: {e}"
        ) from e
    except InvalidDocument as e:
        raise ParseError(f"Document cannot be stored: {e}") from e


class MongoStorage:
    """StorageAccessorPort backed by one MongoDB collection."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection.with_options(
            codec_options=CodecOptions(tz_aware=True, tzinfo=UTC)
        )
        self.name = collection.name

    @property
    def collection(self) -> Collection:
        return self._collection

    def find_many(
        self,
        filter: Filter,
        sort: SortSpec,
        limit: int,
        skip: int = 0,
    ) -> list[Document]:
        with _driver_errors(self.name):
            cursor = self._collection.find(dict(filter))
            if sort:
                cursor = cursor.sort(list(sort))
            return list(cursor.skip(skip).limit(limit))

    def find_one(
        self,
        filter: Filter,
        projection: Mapping[str, Any] | None = None,
    ) -> Document | None:
        with _driver_errors(self.name):
            return self._collection.find_one(dict(filter), projection=projection)

    def insert_one(self, document: Document) -> Any:
        with _driver_errors(self.name):
            return self._collection.insert_one(document).inserted_id

    def insert_many(self, documents: Sequence[Document]) -> list[Any]:
        # insert_many fills in missing _id values on the passed documents
        batch = [dict(document) for document in documents]
        with _driver_errors(self.name):
            try:
                return list(self._collection.insert_many(batch, ordered=False).inserted_ids)
            except BulkWriteError as e:
                failed = {error["index"] for error in e.details.get("writeErrors", [])}
                for error in e.details.get("writeErrors", []):
                    logger.warning(
                        "insert_many on %s: document %d not written: %s",
                        self.name,
                        error["index"],
                        error.get("errmsg"),
                    )
                return [doc["_id"] for index, doc in enumerate(batch) if index not in failed]

    def update_one(
        self,
        filter: Filter,
        update: Mapping[str, Any],
        upsert: bool = False,
    ) -> int:
        with _driver_errors(self.name):
            result = self._collection.update_one(dict(filter), dict(update), upsert=upsert)
        return result.matched_count

    def delete_one(self, filter: Filter) -> int:
        with _driver_errors(self.name):
            return self._collection.delete_one(dict(filter)).deleted_count
