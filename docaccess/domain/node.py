"""
NodeDetails - audit metadata carried by every stored document.

Every top-level record and every embedded item holds a `node` block:

    {date_created, date_modified, created_by_id, updated_by_id}

Invariants:
- date_modified >= date_created
- At creation both timestamps are equal and both actor ids are equal
- Mutations refresh date_modified / updated_by_id only
- Timestamps are UTC-aware with millisecond precision (the store's precision)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from docaccess.core.errors import ParseError
from docaccess.domain.identifier import Identifier

NODE_FIELD = "node"


def truncate_timestamp(value: datetime) -> datetime:
    """Return value as aware UTC, cut to whole milliseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def _id_to_storage(actor_id: Identifier | None) -> Any:
    return actor_id.to_storage() if actor_id is not None else None


class NodeDetails(BaseModel):
    """Audit block for one record or embedded item."""

    model_config = ConfigDict(frozen=True)

    date_created: datetime
    date_modified: datetime
    created_by_id: Identifier | None = None
    updated_by_id: Identifier | None = None

    @field_validator("date_created", "date_modified")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return truncate_timestamp(value)

    @model_validator(mode="after")
    def _check_order(self) -> NodeDetails:
        if self.date_modified < self.date_created:
            raise ValueError("date_modified must not precede date_created")
        return self

    @classmethod
    def create(cls, now: datetime, actor_id: Identifier | None = None) -> NodeDetails:
        """Fresh block: both timestamps = now, both actors = actor_id."""
        stamp = truncate_timestamp(now)
        return cls(
            date_created=stamp,
            date_modified=stamp,
            created_by_id=actor_id,
            updated_by_id=actor_id,
        )

    def touched(self, now: datetime, actor_id: Identifier | None = None) -> NodeDetails:
        """Copy with date_modified / updated_by_id refreshed."""
        stamp = max(truncate_timestamp(now), self.date_created)
        return self.model_copy(update={"date_modified": stamp, "updated_by_id": actor_id})

    def to_document(self) -> dict[str, Any]:
        return {
            "date_created": self.date_created,
            "date_modified": self.date_modified,
            "created_by_id": _id_to_storage(self.created_by_id),
            "updated_by_id": _id_to_storage(self.updated_by_id),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> NodeDetails:
        """
        Read a stored node block.

        Raises:
            ParseError: if the block is missing fields or breaks an invariant
        """
        try:
            data = dict(document)
            for key in ("created_by_id", "updated_by_id"):
                if data.get(key) is not None:
                    data[key] = Identifier.from_storage(data[key])
            return cls.model_validate(data)
        except (ValidationError, TypeError, ValueError) as e:
            raise ParseError(f"Invalid node metadata: {e}") from e


def modification_update(
    now: datetime,
    actor_id: Identifier | None,
    prefix: str = NODE_FIELD,
) -> dict[str, dict[str, Any]]:
    """
    Update operators refreshing the modification half of a node block.

    date_modified goes through $max: a writer whose clock reads behind the
    stored stamp leaves it in place, so date_modified >= date_created holds.
    """
    return {
        "$set": {f"{prefix}.updated_by_id": _id_to_storage(actor_id)},
        "$max": {f"{prefix}.date_modified": truncate_timestamp(now)},
    }


def merge_update(update: dict[str, Any], extra: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Fold `extra`'s operator entries into `update` in place."""
    for op, fields in extra.items():
        update[op] = {**(update.get(op) or {}), **fields}
    return update


# --- Model bases for typed results ---


class AuditedModel(BaseModel):
    """Base for top-level documents decoded into pydantic models."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Identifier | None = Field(default=None, alias="_id")
    node: NodeDetails | None = None


class EmbeddedModel(BaseModel):
    """Base for items stored in a parent's array field."""

    model_config = ConfigDict(extra="allow")

    id: Identifier | None = None
    node: NodeDetails | None = None
