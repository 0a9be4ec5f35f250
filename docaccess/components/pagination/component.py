"""
Pagination component - Keyset pagination engine.

Turns a PageRequest into storage queries and assembles a Page.

Key behaviors:
- Sort orders are made total by appending the id field as a tie-break
- Cursors carry the boundary item's sort-key values, never row offsets
- Backward scans query in reversed order and reverse the batch, so items
  always come back in the requested order
- limit + 1 rows are fetched to detect more rows in the scan direction; one
  probe query (limit 1) checks the opposite side of a supplied cursor, the
  cursor row included
- Malformed or mismatched cursors are rejected before any storage call
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from docaccess.core.errors import InvalidCursorError, ParseError, storage_errors
from docaccess.core.ports import Document, StorageAccessorPort
from docaccess.domain.cursor import Cursor, CursorDirection, decode_cursor, encode_cursor

from .models import (
    ASCENDING,
    DEFAULT_LIMIT,
    Edge,
    Page,
    PageInfo,
    PageRequest,
    SortInput,
    SortKey,
    normalize_sort,
)

logger = logging.getLogger(__name__)

_MISSING = object()


# --- Document helpers ---


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Value at a dotted path, or None when any segment is missing."""
    current: Any = document
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else _MISSING
        else:
            return None
        if current is _MISSING:
            return None
    return current


def sort_key_values(document: Mapping[str, Any], sort: Sequence[SortKey]) -> tuple[tuple[str, Any], ...]:
    return tuple((key.field, get_path(document, key.field)) for key in sort)


# --- Query construction ---


def _boundary(field: str, value: Any, greater: bool, inclusive: bool) -> dict[str, Any] | None:
    """
    Condition placing `field` past `value`; None when no value can be.

    Null and missing fields sort before every other value, and range
    operators never match across types, so null boundaries use equality
    and $ne instead.
    """
    if value is None:
        if greater:
            return {} if inclusive else {field: {"$ne": None}}
        return {field: None} if inclusive else None
    op = ("$gt" if greater else "$lt") + ("e" if inclusive else "")
    if greater:
        return {field: {op: value}}
    return {"$or": [{field: {op: value}}, {field: None}]}


def build_keyset_filter(
    sort: Sequence[SortKey],
    cursor: Cursor,
    backward: bool = False,
    inclusive: bool = False,
) -> dict[str, Any]:
    """
    Rows after the cursor in scan order.

    (k1 > v1) OR (k1 = v1 AND k2 > v2) OR ... with > flipped to < for
    descending keys, and every comparison flipped again for backward scans.
    With inclusive the last comparison also admits the cursor row itself.
    Nulls sort first: "less than v" also admits null, "greater than null"
    means not null.
    """
    clauses: list[dict[str, Any]] = []
    for index, key in enumerate(sort):
        ascending = key.direction == ASCENDING
        if backward:
            ascending = not ascending
        last = index == len(sort) - 1
        boundary = _boundary(key.field, cursor.value_of(key.field), ascending, inclusive and last)
        if boundary is None:
            continue
        clause: dict[str, Any] = {prev.field: cursor.value_of(prev.field) for prev in sort[:index]}
        clause.update(boundary)
        clauses.append(clause)
    if not clauses:
        # Never matches: no row sorts past the cursor
        return {sort[0].field: {"$in": []}}
    return {"$or": clauses}


def combine_filters(*filters: Mapping[str, Any] | None) -> dict[str, Any]:
    parts = [dict(f) for f in filters if f]
    if not parts:
        return {}
    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}


def _sort_pairs(sort: Sequence[SortKey]) -> list[tuple[str, int]]:
    return [key.as_pair() for key in sort]


def _encode(document: Mapping[str, Any], sort: Sequence[SortKey], direction: CursorDirection) -> str:
    try:
        return encode_cursor(Cursor(keys=sort_key_values(document, sort), direction=direction))
    except TypeError as e:
        raise ParseError(f"Sort key is not cursor-encodable: {e}") from e


def _decode(token: str, sort: Sequence[SortKey]) -> Cursor:
    cursor = decode_cursor(token)
    expected = tuple(key.field for key in sort)
    if cursor.fields != expected:
        raise InvalidCursorError(
            token,
            f"cursor keys {list(cursor.fields)} do not match sort {list(expected)}",
        )
    return cursor


# --- Engine ---


def run_paginate(
    request: PageRequest,
    *,
    storage: StorageAccessorPort,
    id_field: str = "_id",
    default_limit: int = DEFAULT_LIMIT,
    default_sort: SortInput | None = None,
) -> Page[Document]:
    """
    Execute one keyset-paginated query.

    Args:
        request: Filter, sort, limit and cursors.
        storage: Storage accessor port.
        id_field: Unique field appended as the sort tie-break.
        default_limit: Page size when the request has none.
        default_sort: Order when the request has none.

    Returns:
        Page of raw documents in requested sort order.

    Raises:
        InvalidCursorError: malformed cursor, before any query runs
        ParseError: invalid limit, skip or sort
    """
    limit = default_limit if request.limit is None else request.limit
    skip = 0 if request.skip is None else request.skip
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ParseError(f"limit must be a positive integer, got {limit!r}")
    if isinstance(skip, bool) or not isinstance(skip, int) or skip < 0:
        raise ParseError(f"skip must be a non-negative integer, got {skip!r}")

    sort_input = request.sort if request.sort else (default_sort or [(id_field, ASCENDING)])
    sort = normalize_sort(sort_input, id_field)
    backward = request.is_backward
    token = request.token
    cursor = _decode(token, sort) if token is not None else None

    scan_sort = tuple(key.reversed() for key in sort) if backward else sort
    base_filter = dict(request.filter or {})
    query_filter = (
        combine_filters(base_filter, build_keyset_filter(sort, cursor, backward))
        if cursor is not None
        else base_filter
    )

    logger.debug(
        "Paginating %s limit=%d skip=%d cursor=%s",
        "backward" if backward else "forward",
        limit,
        skip,
        cursor is not None,
    )
    with storage_errors("find_many"):
        rows = storage.find_many(query_filter, _sort_pairs(scan_sort), limit + 1, skip)

    more_in_scan_direction = len(rows) > limit
    rows = rows[:limit]
    if backward:
        rows.reverse()

    if cursor is not None:
        probe_sort = sort if backward else tuple(key.reversed() for key in sort)
        probe_filter = combine_filters(
            base_filter, build_keyset_filter(sort, cursor, not backward, inclusive=True)
        )
        with storage_errors("find_many"):
            more_behind = bool(storage.find_many(probe_filter, _sort_pairs(probe_sort), 1, 0))
    else:
        more_behind = skip > 0

    if backward:
        has_previous, has_next = more_in_scan_direction, more_behind
    else:
        has_next, has_previous = more_in_scan_direction, more_behind

    edges = tuple(Edge(cursor=_encode(row, sort, CursorDirection.FORWARD), node=row) for row in rows)
    page_info = PageInfo(
        has_next_page=has_next,
        has_previous_page=has_previous,
        start_cursor=_encode(rows[0], sort, CursorDirection.BACKWARD) if rows else None,
        end_cursor=edges[-1].cursor if edges else None,
    )
    return Page(edges=edges, page_info=page_info)
