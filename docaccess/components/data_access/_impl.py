"""
DataAccessService - Generic CRUD and pagination over one collection.

Wraps a StorageAccessorPort with audited writes, keyset pagination,
substring search and embedded-array CRUD.

Key behaviors:
- Every inserted record gets a fresh node block (created = modified = now)
- Updates refresh node.date_modified / node.updated_by_id only, and never
  write the id field or the node block from the caller's partial
- Missing targets on update raise NotFoundError; missing targets on delete
  are reported through DeleteResponse.success
- insert_many skips items that fail to serialize and logs them
- Results are plain documents, or instances of `model` when one is given
- Every storage call runs inside storage_errors, so callers only ever see
  ServiceError subclasses
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from docaccess.adapters.clock import SystemClock
from docaccess.components.embedded import (
    DeleteEmbeddedInput,
    EmbeddedFields,
    FindEmbeddedInput,
    GetEmbeddedInput,
    InsertEmbeddedInput,
    UpdateEmbeddedInput,
    run_delete_embedded,
    run_find_embedded,
    run_get_embedded,
    run_insert_embedded,
    run_update_embedded,
)
from docaccess.components.pagination import (
    DEFAULT_LIMIT,
    Page,
    PageRequest,
    SortInput,
    run_paginate,
)
from docaccess.core.errors import NotFoundError, ParseError, storage_errors
from docaccess.core.ports import ClockPort, Document, Filter, StorageAccessorPort
from docaccess.domain.documents import from_document, to_document, to_storage_value
from docaccess.domain.identifier import Identifier
from docaccess.domain.node import NODE_FIELD, NodeDetails, merge_update, modification_update
from docaccess.domain.results import DeleteResponse

logger = logging.getLogger(__name__)


# --- Configuration ---


@dataclass(frozen=True)
class ServiceConfig:
    """Per-collection service configuration."""

    default_limit: int = DEFAULT_LIMIT
    id_field: str = "_id"
    embedded_id_field: str = "id"
    node_field: str = NODE_FIELD
    # Empty means id_field ascending
    default_sort: tuple[tuple[str, int], ...] = ()
    # Applied by find() when the caller passes no filter
    default_filter: Mapping[str, Any] | None = None


DEFAULT_CONFIG = ServiceConfig()


# --- Helpers ---

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])|(?<=[A-Z])([A-Z])(?=[a-z])")


def snake_case(field: str) -> str:
    """camelCase -> snake_case, segment by segment for dotted paths."""
    return ".".join(
        _CAMEL_BOUNDARY.sub(lambda m: "_" + (m.group(1) or m.group(2)), segment).lower()
        for segment in field.split(".")
    )


def build_search_filter(term: str, fields: Sequence[str]) -> dict[str, Any]:
    """Case-insensitive literal substring match on any of `fields`."""
    if not fields:
        raise ParseError("At least one search field is required")
    pattern = re.escape(term)
    return {
        "$or": [
            {snake_case(field): {"$regex": pattern, "$options": "i"}} for field in fields
        ]
    }


def _as_identifier(value: Identifier | Any) -> Identifier:
    return Identifier.normalize(value)


# --- Service ---


class DataAccessService:
    """
    Data access for one collection.

    Args:
        storage: Backend accessor for the collection.
        clock: Time source for audit stamps (SystemClock by default).
        config: Field names, default sort and default page size.
        model: Optional pydantic model results are decoded into.
        id_factory: Generator for embedded item ids.
    """

    def __init__(
        self,
        storage: StorageAccessorPort,
        clock: ClockPort | None = None,
        config: ServiceConfig | None = None,
        model: type[BaseModel] | None = None,
        id_factory: Callable[[], Identifier] | None = None,
    ) -> None:
        self.storage = storage
        self.clock = clock or SystemClock()
        self.config = config or DEFAULT_CONFIG
        self.model = model
        self.id_factory = id_factory or Identifier.generate_text
        self._fields = EmbeddedFields(
            parent_id_field=self.config.id_field,
            embedded_id_field=self.config.embedded_id_field,
            node_field=self.config.node_field,
        )

    # --- Internals ---

    def _decode(self, document: Document) -> Any:
        if self.model is None:
            return document
        return from_document(document, self.model)

    def _id_filter(self, item_id: Identifier) -> dict[str, Any]:
        return {self.config.id_field: item_id.to_storage()}

    def _is_managed(self, key: str) -> bool:
        return key.split(".")[0] in (self.config.id_field, self.config.node_field)

    def _prepare_insert(self, item: object, node: NodeDetails) -> Document:
        document = to_document(item)
        id_field = self.config.id_field
        if document.get(id_field) is None:
            document.pop(id_field, None)
        else:
            document[id_field] = Identifier.normalize(document[id_field]).to_storage()
        document[self.config.node_field] = node.to_document()
        return document

    def _reread(self, item_id: Identifier) -> Any:
        with storage_errors("find_one"):
            document = self.storage.find_one(self._id_filter(item_id))
        if document is None:
            raise NotFoundError(f"Unable to find item {item_id}")
        return self._decode(document)

    # --- Queries ---

    def find(
        self,
        filter: Filter | None = None,
        sort: SortInput | None = None,
        limit: int | None = None,
        after: str | None = None,
        before: str | None = None,
        skip: int | None = None,
    ) -> Page[Any]:
        """Keyset-paginated query; see components.pagination."""
        request = PageRequest(
            filter=to_storage_value(filter if filter is not None else self.config.default_filter),
            sort=sort,
            limit=limit,
            after=after,
            before=before,
            skip=skip,
        )
        page = run_paginate(
            request,
            storage=self.storage,
            id_field=self.config.id_field,
            default_limit=self.config.default_limit,
            default_sort=self.config.default_sort,
        )
        return page.map(self._decode)

    def search(
        self,
        term: str,
        fields: Sequence[str],
        sort: SortInput | None = None,
        limit: int | None = None,
        after: str | None = None,
        before: str | None = None,
        skip: int | None = None,
    ) -> Page[Any]:
        """Case-insensitive substring search over `fields`, paginated."""
        return self.find(
            build_search_filter(term, fields),
            sort=sort,
            limit=limit,
            after=after,
            before=before,
            skip=skip,
        )

    def find_one_by_id(self, item_id: Identifier | Any) -> Any | None:
        ident = _as_identifier(item_id)
        logger.debug("find_one_by_id %s", ident)
        with storage_errors("find_one"):
            document = self.storage.find_one(self._id_filter(ident))
        return None if document is None else self._decode(document)

    def find_one_by_value(self, field: str, value: Any) -> Any | None:
        """Equality lookup on any (dotted) field."""
        if not field:
            raise ParseError("Field name is required")
        with storage_errors("find_one"):
            document = self.storage.find_one({field: to_storage_value(value)})
        return None if document is None else self._decode(document)

    # --- Writes ---

    def insert_one(self, item: object, actor_id: Identifier | None = None) -> Identifier:
        """
        Stamp and insert one record.

        Raises:
            ParseError: if the item does not serialize to a document
        """
        node = NodeDetails.create(self.clock.now_utc(), actor_id)
        document = self._prepare_insert(item, node)
        with storage_errors("insert_one"):
            raw_id = self.storage.insert_one(document)
        ident = Identifier.from_storage(raw_id)
        logger.debug("Inserted %s", ident)
        return ident

    def insert_many(
        self,
        items: Sequence[object],
        actor_id: Identifier | None = None,
    ) -> list[Identifier]:
        """Stamp and insert many records; unserializable items are skipped."""
        node = NodeDetails.create(self.clock.now_utc(), actor_id)
        documents: list[Document] = []
        for index, item in enumerate(items):
            try:
                documents.append(self._prepare_insert(item, node))
            except ParseError as e:
                logger.warning("Skipping item %d in insert_many: %s", index, e)
        if not documents:
            return []
        with storage_errors("insert_many"):
            raw_ids = self.storage.insert_many(documents)
        logger.debug("Inserted %d of %d item(s)", len(raw_ids), len(items))
        return [Identifier.from_storage(raw) for raw in raw_ids]

    def update_one(
        self,
        item_id: Identifier | Any,
        partial_update: Mapping[str, Any] | object,
        actor_id: Identifier | None = None,
    ) -> Any:
        """
        Set the partial's fields and refresh the audit block.

        Returns:
            The record as re-read after the update.

        Raises:
            NotFoundError: nothing matched, or the re-read found nothing
        """
        ident = _as_identifier(item_id)
        changes = to_document(partial_update)
        set_fields = {key: value for key, value in changes.items() if not self._is_managed(key)}
        if len(set_fields) != len(changes):
            logger.debug("Ignoring managed keys in update of %s", ident)
        update = merge_update(
            {"$set": set_fields},
            modification_update(self.clock.now_utc(), actor_id, prefix=self.config.node_field),
        )
        with storage_errors("update_one"):
            matched = self.storage.update_one(self._id_filter(ident), update)
        if matched == 0:
            raise NotFoundError(f"Unable to find item {ident}")
        return self._reread(ident)

    def update_one_with_document(
        self,
        item_id: Identifier | Any,
        update: Mapping[str, Any],
        actor_id: Identifier | None = None,
    ) -> Any:
        """
        Apply a raw update document ($set, $push, ...) with the audit refresh
        merged into its $set.

        Raises:
            ParseError: if `update` has a non-operator key
            NotFoundError: nothing matched, or the re-read found nothing
        """
        ident = _as_identifier(item_id)
        document = to_storage_value(dict(update))
        for key in document:
            if not key.startswith("$"):
                raise ParseError(f"Update documents may only contain operators, got {key!r}")
        merge_update(
            document,
            modification_update(self.clock.now_utc(), actor_id, prefix=self.config.node_field),
        )
        with storage_errors("update_one"):
            matched = self.storage.update_one(self._id_filter(ident), document)
        if matched == 0:
            raise NotFoundError(f"Unable to find item {ident}")
        return self._reread(ident)

    def delete_one_by_id(self, item_id: Identifier | Any) -> DeleteResponse:
        """Delete by id; success is False when nothing was there."""
        ident = _as_identifier(item_id)
        with storage_errors("delete_one"):
            deleted = self.storage.delete_one(self._id_filter(ident))
        logger.debug("delete_one_by_id %s deleted=%d", ident, deleted)
        return DeleteResponse(id=ident, success=deleted == 1)

    def delete_one_by_query(self, filter: Filter) -> bool:
        with storage_errors("delete_one"):
            deleted = self.storage.delete_one(to_storage_value(filter))
        return deleted == 1

    # --- Embedded items ---

    def insert_embedded(
        self,
        parent_id: Identifier | Any,
        field_path: str,
        items: Sequence[object],
        actor_id: Identifier | None = None,
        upsert_parent: bool = False,
        parent_seed: Mapping[str, Any] | None = None,
    ) -> list[Identifier]:
        inp = InsertEmbeddedInput(
            parent_id=_as_identifier(parent_id),
            field_path=field_path,
            items=list(items),
            actor_id=actor_id,
            upsert_parent=upsert_parent,
            parent_seed=parent_seed,
        )
        return run_insert_embedded(
            inp,
            storage=self.storage,
            clock=self.clock,
            fields=self._fields,
            id_factory=self.id_factory,
        )

    def update_embedded(
        self,
        parent_id: Identifier | Any,
        field_path: str,
        embedded_id: Identifier | Any,
        partial_update: Mapping[str, Any] | object,
        actor_id: Identifier | None = None,
    ) -> Any:
        inp = UpdateEmbeddedInput(
            parent_id=_as_identifier(parent_id),
            field_path=field_path,
            embedded_id=_as_identifier(embedded_id),
            update=partial_update,
            actor_id=actor_id,
        )
        parent = run_update_embedded(inp, storage=self.storage, clock=self.clock, fields=self._fields)
        return self._decode(parent)

    def delete_embedded(
        self,
        parent_id: Identifier | Any,
        field_path: str,
        embedded_id: Identifier | Any,
    ) -> DeleteResponse:
        inp = DeleteEmbeddedInput(
            parent_id=_as_identifier(parent_id),
            field_path=field_path,
            embedded_id=_as_identifier(embedded_id),
        )
        return run_delete_embedded(inp, storage=self.storage, fields=self._fields)

    def get_embedded_by_id(
        self,
        parent_id: Identifier | Any,
        field_path: str,
        limit: int | None = None,
        skip: int | None = None,
    ) -> list[Document]:
        inp = GetEmbeddedInput(
            parent_id=_as_identifier(parent_id),
            field_path=field_path,
            limit=limit,
            skip=skip,
        )
        return run_get_embedded(inp, storage=self.storage, fields=self._fields)

    def find_embedded_one(
        self,
        parent_id: Identifier | Any,
        field_path: str,
        embedded_id: Identifier | Any,
    ) -> Document | None:
        inp = FindEmbeddedInput(
            parent_id=_as_identifier(parent_id),
            field_path=field_path,
            embedded_id=_as_identifier(embedded_id),
        )
        return run_find_embedded(inp, storage=self.storage, fields=self._fields)
