"""
Embedded component - CRUD on items nested in a parent's array field.

Items are addressed by (parent id, field path, embedded id) and stored as

    {...fields, id, node: {date_created, date_modified, created_by_id, updated_by_id}}

Invariants:
- Embedded ids are unique within one (parent, field path)
- Every mutation is a single filtered update, so it either applies to the
  matching parent/element or to nothing
- Updates touch exactly one element; siblings are left as stored
- Only the touched element's audit block is refreshed

Key behaviors:
- Insert appends all items in one call; a missing parent is detected by the
  same call (matched count 0), never by a separate read
- Delete pulls by embedded id and reports success once the call completes,
  without checking that an element was removed
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from docaccess.components.pagination import get_path
from docaccess.core.errors import NotFoundError, ParseError, storage_errors
from docaccess.core.ports import ClockPort, Document, StorageAccessorPort
from docaccess.domain.documents import to_document
from docaccess.domain.identifier import Identifier
from docaccess.domain.node import NodeDetails, merge_update, modification_update
from docaccess.domain.results import DeleteResponse

from .models import (
    DEFAULT_FIELDS,
    DeleteEmbeddedInput,
    EmbeddedFields,
    FindEmbeddedInput,
    GetEmbeddedInput,
    InsertEmbeddedInput,
    UpdateEmbeddedInput,
)

logger = logging.getLogger(__name__)


# --- Validation ---


def validate_field_path(field_path: str) -> str:
    """
    Check a dotted array path.

    Raises:
        ParseError: on empty segments or operator characters
    """
    if not isinstance(field_path, str) or not field_path:
        raise ParseError("Embedded field path is required")
    for segment in field_path.split("."):
        if not segment or segment.startswith("$"):
            raise ParseError(f"Invalid embedded field path {field_path!r}")
    return field_path


def _strip_managed(update: dict[str, Any], fields: EmbeddedFields) -> dict[str, Any]:
    managed = (fields.embedded_id_field, fields.node_field)
    for key in [key for key in update if key.split(".")[0] in managed]:
        logger.debug("Ignoring managed key %r in embedded update", key)
        update.pop(key)
    return update


# --- Entry Points ---


def run_insert_embedded(
    inp: InsertEmbeddedInput,
    *,
    storage: StorageAccessorPort,
    clock: ClockPort,
    fields: EmbeddedFields = DEFAULT_FIELDS,
    id_factory: Callable[[], Identifier] = Identifier.generate_text,
) -> list[Identifier]:
    """
    Stamp and append items to the parent's array.

    Returns:
        Identifiers of the appended items, in input order.

    Raises:
        ParseError: no items, unserializable item, duplicate or seed conflict
        NotFoundError: parent absent (non-upserting) or a supplied id
            already present in the array
    """
    path = validate_field_path(inp.field_path)
    if not inp.items:
        raise ParseError("At least one embedded item is required")

    now = clock.now_utc()
    documents: list[Document] = []
    ids: list[Identifier] = []
    supplied: list[Any] = []
    for item in inp.items:
        document = to_document(item)
        raw_id = document.get(fields.embedded_id_field)
        if raw_id is None:
            ident = id_factory()
        else:
            ident = Identifier.normalize(raw_id)
            supplied.append(ident.to_storage())
        if ident in ids:
            raise ParseError(f"Duplicate embedded id {ident} in batch")
        document[fields.embedded_id_field] = ident.to_storage()
        document[fields.node_field] = NodeDetails.create(now, inp.actor_id).to_document()
        documents.append(document)
        ids.append(ident)

    parent_filter: dict[str, Any] = {fields.parent_id_field: inp.parent_id.to_storage()}
    if supplied:
        parent_filter[f"{path}.{fields.embedded_id_field}"] = {"$nin": supplied}
    update: dict[str, Any] = {"$push": {path: {"$each": documents}}}

    if inp.upsert_parent:
        seed = to_document(inp.parent_seed or {})
        root = path.split(".")[0]
        for key in (fields.parent_id_field, root):
            if key in seed:
                raise ParseError(f"Parent seed may not set {key!r}")
        seed[fields.node_field] = NodeDetails.create(now, inp.actor_id).to_document()
        update["$setOnInsert"] = seed
        with storage_errors("update_one"):
            storage.update_one(parent_filter, update, upsert=True)
    else:
        with storage_errors("update_one"):
            matched = storage.update_one(parent_filter, update)
        if matched == 0:
            if supplied:
                raise NotFoundError(
                    f"Unable to find item {inp.parent_id} without embedded ids {supplied} in {path}"
                )
            raise NotFoundError(f"Unable to find item {inp.parent_id}")

    logger.debug("Appended %d item(s) to %s of %s", len(ids), path, inp.parent_id)
    return ids


def run_update_embedded(
    inp: UpdateEmbeddedInput,
    *,
    storage: StorageAccessorPort,
    clock: ClockPort,
    fields: EmbeddedFields = DEFAULT_FIELDS,
) -> Document:
    """
    Set fields on exactly one embedded element through the positional operator.

    Returns:
        The whole parent document as re-read after the update.

    Raises:
        ParseError: unserializable update
        NotFoundError: no element matches, or the parent vanished before re-read
    """
    path = validate_field_path(inp.field_path)
    changes = _strip_managed(to_document(inp.update), fields)
    element = f"{path}.$"

    set_fields: dict[str, Any] = {f"{element}.{key}": value for key, value in changes.items()}
    update = merge_update(
        {"$set": set_fields},
        modification_update(clock.now_utc(), inp.actor_id, prefix=f"{element}.{fields.node_field}"),
    )
    parent_filter = {fields.parent_id_field: inp.parent_id.to_storage()}
    element_filter = {
        **parent_filter,
        f"{path}.{fields.embedded_id_field}": inp.embedded_id.to_storage(),
    }

    with storage_errors("update_one"):
        matched = storage.update_one(element_filter, update)
    if matched == 0:
        raise NotFoundError(f"Unable to find embedded item {inp.embedded_id} in {path}")

    with storage_errors("find_one"):
        parent = storage.find_one(parent_filter)
    if parent is None:
        raise NotFoundError(f"Unable to find item {inp.parent_id}")
    return parent


def run_delete_embedded(
    inp: DeleteEmbeddedInput,
    *,
    storage: StorageAccessorPort,
    fields: EmbeddedFields = DEFAULT_FIELDS,
) -> DeleteResponse:
    """Pull the element; success is reported without verifying a removal."""
    path = validate_field_path(inp.field_path)
    update = {"$pull": {path: {fields.embedded_id_field: inp.embedded_id.to_storage()}}}
    with storage_errors("update_one"):
        storage.update_one({fields.parent_id_field: inp.parent_id.to_storage()}, update)
    return DeleteResponse(id=inp.embedded_id, success=True)


def run_get_embedded(
    inp: GetEmbeddedInput,
    *,
    storage: StorageAccessorPort,
    fields: EmbeddedFields = DEFAULT_FIELDS,
) -> list[Document]:
    """Slice of the embedded array; [] when the parent is absent."""
    path = validate_field_path(inp.field_path)
    skip = inp.skip or 0
    if skip < 0:
        raise ParseError(f"skip must be non-negative, got {skip}")
    if inp.limit is not None and inp.limit < 1:
        raise ParseError(f"limit must be positive, got {inp.limit}")

    if inp.limit is None:
        projection: dict[str, Any] = {path: 1}
    else:
        projection = {path: {"$slice": [skip, inp.limit]}}

    with storage_errors("find_one"):
        parent = storage.find_one({fields.parent_id_field: inp.parent_id.to_storage()}, projection)
    if parent is None:
        return []
    values = get_path(parent, path)
    if not isinstance(values, list):
        return []
    return values[skip:] if inp.limit is None else values


def run_find_embedded(
    inp: FindEmbeddedInput,
    *,
    storage: StorageAccessorPort,
    fields: EmbeddedFields = DEFAULT_FIELDS,
) -> Document | None:
    """Single embedded element, or None."""
    path = validate_field_path(inp.field_path)
    wanted = inp.embedded_id.to_storage()
    query = {
        fields.parent_id_field: inp.parent_id.to_storage(),
        f"{path}.{fields.embedded_id_field}": wanted,
    }
    with storage_errors("find_one"):
        parent = storage.find_one(query, {path: 1})
    if parent is None:
        return None
    values = get_path(parent, path)
    if not isinstance(values, list):
        return None
    return next(
        (
            value
            for value in values
            if isinstance(value, dict) and value.get(fields.embedded_id_field) == wanted
        ),
        None,
    )
