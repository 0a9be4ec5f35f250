"""
Cursor codec - opaque keyset pagination tokens.

A cursor is the sort-key tuple of a boundary item plus the scan direction.
Tokens are URL-safe base64 (unpadded) of a compact JSON envelope:

    {"v": 1, "d": "f" | "b", "k": [[field, value], ...]}

Values JSON cannot carry are tagged: {"$oid": hex}, {"$date": iso}.

Invariants:
- decode_cursor(encode_cursor(c)) == c
- Cursors are immutable; paging replaces them, never mutates them
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from docaccess.core.errors import InvalidCursorError

CURSOR_VERSION = 1


class CursorDirection(str, Enum):
    FORWARD = "f"
    BACKWARD = "b"


@dataclass(frozen=True)
class Cursor:
    """Boundary position in an ordered result sequence."""

    keys: tuple[tuple[str, Any], ...]
    direction: CursorDirection = CursorDirection.FORWARD

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(field for field, _ in self.keys)

    def value_of(self, field: str) -> Any:
        for name, value in self.keys:
            if name == field:
                return value
        raise KeyError(field)


# --- Value tagging ---


def _tag(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return {"$oid": str(value)}
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    if isinstance(value, dict):
        return {"$doc": [[key, _tag(item)] for key, item in value.items()]}
    if isinstance(value, (list, tuple)):
        return [_tag(item) for item in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    raise TypeError(f"Cannot encode cursor value of type {type(value).__name__}")


def _untag(value: Any) -> Any:
    if isinstance(value, list):
        return [_untag(item) for item in value]
    if isinstance(value, dict):
        if set(value) == {"$oid"}:
            return ObjectId(value["$oid"])
        if set(value) == {"$date"}:
            return datetime.fromisoformat(value["$date"])
        if set(value) == {"$doc"}:
            return {key: _untag(item) for key, item in value["$doc"]}
        raise ValueError(f"Unknown tagged value {sorted(value)}")
    return value


# --- Codec ---


def encode_cursor(cursor: Cursor) -> str:
    """Serialize a cursor into an opaque token."""
    envelope = {
        "v": CURSOR_VERSION,
        "d": cursor.direction.value,
        "k": [[field, _tag(value)] for field, value in cursor.keys],
    }
    raw = json.dumps(envelope, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> Cursor:
    """
    Parse a token produced by encode_cursor.

    Raises:
        InvalidCursorError: on any malformed input
    """
    if not isinstance(token, str) or not token:
        raise InvalidCursorError(str(token), "empty token")
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        envelope = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidCursorError(token, "not a cursor token") from e

    if not isinstance(envelope, dict) or envelope.get("v") != CURSOR_VERSION:
        raise InvalidCursorError(token, "unsupported cursor version")
    try:
        direction = CursorDirection(envelope.get("d"))
    except ValueError as e:
        raise InvalidCursorError(token, "unknown direction") from e

    pairs = envelope.get("k")
    if not isinstance(pairs, list) or not pairs:
        raise InvalidCursorError(token, "no sort keys")
    keys: list[tuple[str, Any]] = []
    try:
        for pair in pairs:
            if not isinstance(pair, list) or len(pair) != 2 or not isinstance(pair[0], str):
                raise ValueError("malformed key pair")
            keys.append((pair[0], _untag(pair[1])))
    except (InvalidId, TypeError, ValueError) as e:
        raise InvalidCursorError(token, str(e)) from e

    return Cursor(keys=tuple(keys), direction=direction)
