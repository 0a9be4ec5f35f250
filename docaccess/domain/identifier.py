"""
Identifier - polymorphic document id.

A tagged variant over the three id shapes a document store hands out:

- NATIVE: the store's 12-byte ObjectId
- TEXT: any string (UUIDs, slugs, external keys)
- INTEGER: signed 64-bit integer

Invariants:
- Equality and hashing use the normalized byte form (kind tag + value bytes)
- Instances are immutable
- Ordering is total: INTEGER < TEXT < NATIVE, then by value

Wire form (client-facing):
- TEXT     -> the plain string, or "$txt:<string>" when the string itself
              starts with one of the two markers
- INTEGER  -> the integer itself
- NATIVE   -> "$oid:<24 hex digits>"
"""

from __future__ import annotations

import functools
import uuid
from enum import Enum
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from docaccess.core.errors import ParseError

NATIVE_ID_PREFIX = "$oid:"
TEXT_ID_PREFIX = "$txt:"

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


class IdKind(str, Enum):
    """Identifier variants, declared in sort order."""

    INTEGER = "integer"
    TEXT = "text"
    NATIVE = "native"


_KIND_RANK = {IdKind.INTEGER: 0, IdKind.TEXT: 1, IdKind.NATIVE: 2}
_KIND_TAG = {IdKind.INTEGER: b"i", IdKind.TEXT: b"s", IdKind.NATIVE: b"o"}


def _check_int64(value: int) -> int:
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ParseError(f"Integer id {value} is outside the 64-bit range")
    return value


@functools.total_ordering
class Identifier:
    """Immutable id value; construct through the classmethods."""

    __slots__ = ("_kind", "_value")

    _kind: IdKind
    _value: ObjectId | str | int

    def __init__(self, kind: IdKind, value: ObjectId | str | int) -> None:
        if kind is IdKind.NATIVE and not isinstance(value, ObjectId):
            raise ParseError(f"Native id requires an ObjectId, got {type(value).__name__}")
        if kind is IdKind.TEXT and not isinstance(value, str):
            raise ParseError(f"Text id requires a string, got {type(value).__name__}")
        if kind is IdKind.INTEGER:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ParseError(f"Integer id requires an int, got {type(value).__name__}")
            _check_int64(value)
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_value", value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Identifier is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Identifier is immutable")

    # --- Constructors ---

    @classmethod
    def native(cls, value: ObjectId | str | bytes) -> Identifier:
        """Build a NATIVE id from an ObjectId, its hex string or its 12 bytes."""
        if isinstance(value, ObjectId):
            return cls(IdKind.NATIVE, value)
        try:
            return cls(IdKind.NATIVE, ObjectId(value))
        except (InvalidId, TypeError) as e:
            raise ParseError(f"Invalid native id {value!r}: {e}") from e

    @classmethod
    def text(cls, value: str) -> Identifier:
        return cls(IdKind.TEXT, value)

    @classmethod
    def integer(cls, value: int) -> Identifier:
        return cls(IdKind.INTEGER, value)

    @classmethod
    def generate_text(cls) -> Identifier:
        """New TEXT id holding a random UUID4."""
        return cls(IdKind.TEXT, str(uuid.uuid4()))

    @classmethod
    def generate_native(cls) -> Identifier:
        """New NATIVE id holding a fresh ObjectId."""
        return cls(IdKind.NATIVE, ObjectId())

    @classmethod
    def normalize(cls, raw: object) -> Identifier:
        """
        Parse client or application input into an Identifier.

        Rules:
        - Identifier passes through unchanged
        - ObjectId or 12 raw bytes -> NATIVE
        - int (bool excluded) in the 64-bit range -> INTEGER
        - str with the "$oid:" marker -> NATIVE (malformed hex raises)
        - str with the "$txt:" marker -> TEXT of the rest
        - any other str -> TEXT

        Raises:
            ParseError: for every other input
        """
        if isinstance(raw, Identifier):
            return raw
        if isinstance(raw, ObjectId):
            return cls(IdKind.NATIVE, raw)
        if isinstance(raw, bool):
            raise ParseError("Boolean values are not valid ids")
        if isinstance(raw, int):
            return cls(IdKind.INTEGER, raw)
        if isinstance(raw, (bytes, bytearray)):
            if len(raw) != 12:
                raise ParseError(f"Native id bytes must be 12 long, got {len(raw)}")
            return cls(IdKind.NATIVE, ObjectId(bytes(raw)))
        if isinstance(raw, str):
            if raw.startswith(NATIVE_ID_PREFIX):
                return cls.native(raw[len(NATIVE_ID_PREFIX) :])
            if raw.startswith(TEXT_ID_PREFIX):
                return cls(IdKind.TEXT, raw[len(TEXT_ID_PREFIX) :])
            return cls(IdKind.TEXT, raw)
        raise ParseError(f"Unable to parse id from {type(raw).__name__}")

    @classmethod
    def from_wire(cls, value: str | int) -> Identifier:
        """Inverse of to_wire()."""
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ParseError(f"Wire ids are strings or integers, got {type(value).__name__}")
        return cls.normalize(value)

    @classmethod
    def from_storage(cls, value: object) -> Identifier:
        """
        Wrap a value read back from the store.

        Strings are taken literally; the wire marker is not interpreted.
        """
        if isinstance(value, Identifier):
            return value
        if isinstance(value, ObjectId):
            return cls(IdKind.NATIVE, value)
        if isinstance(value, str):
            return cls(IdKind.TEXT, value)
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(IdKind.INTEGER, value)
        raise ParseError(f"Invalid id type stored: {value!r}")

    # --- Accessors ---

    @property
    def kind(self) -> IdKind:
        return self._kind

    @property
    def value(self) -> ObjectId | str | int:
        return self._value

    def to_storage(self) -> ObjectId | str | int:
        """Value as the store keeps it."""
        return self._value

    def to_wire(self) -> str | int:
        if self._kind is IdKind.NATIVE:
            return f"{NATIVE_ID_PREFIX}{self._value}"
        if self._kind is IdKind.TEXT and self._value.startswith(  # type: ignore[union-attr]
            (NATIVE_ID_PREFIX, TEXT_ID_PREFIX)
        ):
            return f"{TEXT_ID_PREFIX}{self._value}"
        return self._value  # type: ignore[return-value]

    def normalized(self) -> bytes:
        """Canonical byte form used for equality and hashing."""
        tag = _KIND_TAG[self._kind]
        if self._kind is IdKind.NATIVE:
            return tag + self._value.binary  # type: ignore[union-attr]
        if self._kind is IdKind.INTEGER:
            return tag + int(self._value).to_bytes(8, "big", signed=True)
        return tag + str(self._value).encode("utf-8")

    # --- Comparison ---

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identifier):
            return NotImplemented
        return self.normalized() == other.normalized()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Identifier):
            return NotImplemented
        return compare(self, other) < 0

    def __hash__(self) -> int:
        return hash(self.normalized())

    def __str__(self) -> str:
        return str(self.to_wire())

    def __repr__(self) -> str:
        return f"Identifier({self._kind.value}, {self._value!r})"

    def __reduce__(self) -> tuple[Any, ...]:
        return (Identifier, (self._kind, self._value))

    # --- pydantic integration ---

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            _validate_for_pydantic,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda ident: ident.to_wire(), when_used="json"
            ),
        )


def _validate_for_pydantic(value: Any) -> Identifier:
    try:
        return Identifier.normalize(value)
    except ParseError as e:
        # pydantic only converts ValueError/AssertionError into validation errors
        raise ValueError(str(e)) from e


def compare(a: Identifier, b: Identifier) -> int:
    """Total order over identifiers: -1, 0 or 1."""
    rank_a, rank_b = _KIND_RANK[a.kind], _KIND_RANK[b.kind]
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1
    if a.kind is IdKind.NATIVE:
        left, right = a.value.binary, b.value.binary  # type: ignore[union-attr]
    else:
        left, right = a.value, b.value  # type: ignore[assignment]
    if left == right:
        return 0
    return -1 if left < right else 1  # type: ignore[operator]


def normalize(raw: object) -> Identifier:
    """Module-level alias for Identifier.normalize."""
    return Identifier.normalize(raw)
