"""
Document conversion helpers.

Turns application values (mappings, pydantic models, dataclasses) into plain
store documents and back.

Key behaviors:
- Identifier values anywhere in the tree become their storage form
- Anything that does not serialize to a mapping raises ParseError
- Results can be decoded into a pydantic model; failures raise ParseError
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from docaccess.core.errors import ParseError
from docaccess.domain.identifier import Identifier

M = TypeVar("M", bound=BaseModel)


def to_storage_value(value: Any) -> Any:
    """Recursively replace Identifiers with their stored values."""
    if isinstance(value, Identifier):
        return value.to_storage()
    if isinstance(value, BaseModel):
        return to_storage_value(value.model_dump(by_alias=True))
    if isinstance(value, Mapping):
        return {str(key): to_storage_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_storage_value(item) for item in value]
    return value


def to_document(item: object) -> dict[str, Any]:
    """
    Serialize an item into a store document.

    Raises:
        ParseError: if the item does not serialize to a mapping
    """
    if isinstance(item, BaseModel):
        raw: Any = item.model_dump(by_alias=True)
    elif dataclasses.is_dataclass(item) and not isinstance(item, type):
        raw = dataclasses.asdict(item)
    else:
        raw = item
    if not isinstance(raw, Mapping):
        raise ParseError(
            f"Error converting {type(item).__name__} into a document: expected a mapping"
        )
    return to_storage_value(raw)


def from_document(document: Mapping[str, Any], model: type[M]) -> M:
    """
    Decode a stored document into `model`.

    Raises:
        ParseError: if validation fails
    """
    try:
        return model.model_validate(dict(document))
    except ValidationError as e:
        raise ParseError(f"Unable to decode document into {model.__name__}: {e}") from e
