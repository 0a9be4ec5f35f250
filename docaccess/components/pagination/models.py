"""
Pagination component - Data models.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from docaccess.core.errors import ParseError

T = TypeVar("T")
U = TypeVar("U")

ASCENDING = 1
DESCENDING = -1

DEFAULT_LIMIT = 25


# --- Sort ---


@dataclass(frozen=True)
class SortKey:
    """One field of a sort order."""

    field: str
    direction: int = ASCENDING

    def reversed(self) -> SortKey:
        return SortKey(self.field, -self.direction)

    def as_pair(self) -> tuple[str, int]:
        return (self.field, self.direction)


SortInput = Mapping[str, int] | Sequence[tuple[str, int]] | Sequence[SortKey]


def normalize_sort(sort: SortInput, tie_break: str) -> tuple[SortKey, ...]:
    """
    Validate a sort order and make it total.

    Accepts an ordered mapping, (field, direction) pairs or SortKeys.
    Appends `tie_break` ascending when the order does not mention it.

    Raises:
        ParseError: on empty field names, duplicate fields or directions
        other than 1 / -1
    """
    pairs = sort.items() if isinstance(sort, Mapping) else sort
    keys: list[SortKey] = []
    seen: set[str] = set()
    for item in pairs:
        if isinstance(item, SortKey):
            key = item
        elif isinstance(item, (tuple, list)) and len(item) == 2:
            key = SortKey(item[0], item[1])
        else:
            raise ParseError(f"Invalid sort entry {item!r}")
        if not isinstance(key.field, str) or not key.field:
            raise ParseError(f"Invalid sort field {key.field!r}")
        if isinstance(key.direction, bool) or key.direction not in (ASCENDING, DESCENDING):
            raise ParseError(f"Sort direction for {key.field!r} must be 1 or -1")
        if key.field in seen:
            raise ParseError(f"Sort field {key.field!r} listed twice")
        seen.add(key.field)
        keys.append(key)
    if tie_break not in seen:
        keys.append(SortKey(tie_break, ASCENDING))
    return tuple(keys)


# --- Input Models ---


@dataclass(frozen=True)
class PageRequest:
    """
    Paginated query input.

    `after` or neither scans forward; `before` without `after` scans backward.
    """

    filter: Mapping[str, Any] | None = None
    sort: SortInput | None = None
    limit: int | None = None
    after: str | None = None
    before: str | None = None
    skip: int | None = None

    @property
    def is_backward(self) -> bool:
        return self.before is not None and self.after is None

    @property
    def token(self) -> str | None:
        return self.before if self.is_backward else self.after


# --- Output Models ---


@dataclass(frozen=True)
class Edge(Generic[T]):
    """An item together with the cursor pointing at it."""

    cursor: str
    node: T


@dataclass(frozen=True)
class PageInfo:
    has_next_page: bool = False
    has_previous_page: bool = False
    start_cursor: str | None = None
    end_cursor: str | None = None


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results, ordered as requested."""

    edges: tuple[Edge[T], ...] = ()
    page_info: PageInfo = field(default_factory=PageInfo)

    @property
    def items(self) -> list[T]:
        return [edge.node for edge in self.edges]

    @property
    def has_next_page(self) -> bool:
        return self.page_info.has_next_page

    @property
    def has_previous_page(self) -> bool:
        return self.page_info.has_previous_page

    @property
    def start_cursor(self) -> str | None:
        return self.page_info.start_cursor

    @property
    def end_cursor(self) -> str | None:
        return self.page_info.end_cursor

    @property
    def is_terminal(self) -> bool:
        """No more rows in either direction."""
        return not (self.has_next_page or self.has_previous_page)

    def map(self, fn: Callable[[T], U]) -> Page[U]:
        """Same page with every item converted by `fn`."""
        return Page(
            edges=tuple(Edge(cursor=edge.cursor, node=fn(edge.node)) for edge in self.edges),
            page_info=self.page_info,
        )

    def __len__(self) -> int:
        return len(self.edges)
