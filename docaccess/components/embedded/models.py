"""
Embedded component - Data models.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from docaccess.domain.identifier import Identifier

# --- Field layout ---


@dataclass(frozen=True)
class EmbeddedFields:
    """Where ids and audit blocks live in parents and embedded items."""

    parent_id_field: str = "_id"
    embedded_id_field: str = "id"
    node_field: str = "node"


DEFAULT_FIELDS = EmbeddedFields()


# --- Input Models ---


@dataclass(frozen=True)
class InsertEmbeddedInput:
    """
    Append items to a parent's array field.

    With upsert_parent the parent is created from parent_seed when absent.
    """

    parent_id: Identifier
    field_path: str
    items: Sequence[object]
    actor_id: Identifier | None = None
    upsert_parent: bool = False
    parent_seed: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class UpdateEmbeddedInput:
    """Field-level update of one embedded item."""

    parent_id: Identifier
    field_path: str
    embedded_id: Identifier
    update: Mapping[str, Any] | object
    actor_id: Identifier | None = None


@dataclass(frozen=True)
class DeleteEmbeddedInput:
    parent_id: Identifier
    field_path: str
    embedded_id: Identifier


@dataclass(frozen=True)
class GetEmbeddedInput:
    """Slice of an embedded array; limit None means to the end."""

    parent_id: Identifier
    field_path: str
    limit: int | None = None
    skip: int | None = None


@dataclass(frozen=True)
class FindEmbeddedInput:
    parent_id: Identifier
    field_path: str
    embedded_id: Identifier
