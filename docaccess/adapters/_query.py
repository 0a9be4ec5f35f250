"""
Document query language evaluator.

Evaluates the MongoDB filter, update and projection subset emitted by the
data access layer against plain dict documents.

Key behaviors:
- Values compare within the store's type brackets: null < numbers < strings
  < objects < arrays < binary < ObjectId < booleans < dates. Values from
  different brackets never satisfy a range operator
- Dotted paths descend through arrays, so "items.id" matches when any
  element's id matches
- A missing field behaves as null for equality and $in
- Updates are applied to the document in place; callers pass a copy
- Unsupported operators raise ValueError
"""

from __future__ import annotations

import copy
import functools
import re
from collections.abc import Iterator, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.regex import Regex

_MISSING = object()


# --- Value ordering ---


def _bracket(value: Any) -> int:
    if value is None:
        return 1
    if isinstance(value, bool):
        return 8
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, str):
        return 3
    if isinstance(value, Mapping):
        return 4
    if isinstance(value, (list, tuple)):
        return 5
    if isinstance(value, (bytes, bytearray)):
        return 6
    if isinstance(value, ObjectId):
        return 7
    if isinstance(value, datetime):
        return 9
    return 10


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def compare_values(a: Any, b: Any) -> int:
    """Total order over stored values; -1, 0 or 1."""
    ba, bb = _bracket(a), _bracket(b)
    if ba != bb:
        return -1 if ba < bb else 1
    if ba == 1:
        return 0
    if ba == 4:
        for (ka, va), (kb, vb) in zip(a.items(), b.items(), strict=False):
            result = compare_values(ka, kb) or compare_values(va, vb)
            if result:
                return result
        return _cmp(len(a), len(b))
    if ba == 5:
        for va, vb in zip(a, b, strict=False):
            result = compare_values(va, vb)
            if result:
                return result
        return _cmp(len(a), len(b))
    if ba == 6:
        return _cmp(len(a), len(b)) or _cmp(bytes(a), bytes(b))
    if ba == 7:
        return _cmp(a.binary, b.binary)
    if ba == 9:
        return _cmp(_as_utc(a), _as_utc(b))
    if ba == 10:
        return _cmp(repr(a), repr(b))
    return _cmp(a, b)


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def values_equal(a: Any, b: Any) -> bool:
    return _bracket(a) == _bracket(b) and compare_values(a, b) == 0


# --- Path resolution ---


def resolve(value: Any, segments: Sequence[str]) -> list[Any]:
    """All values reachable through `segments`, descending into arrays."""
    if not segments:
        return [value]
    head, rest = segments[0], segments[1:]
    if isinstance(value, Mapping):
        if head in value:
            return resolve(value[head], rest)
        return []
    if isinstance(value, list):
        found: list[Any] = []
        if head.isdigit() and int(head) < len(value):
            found.extend(resolve(value[int(head)], rest))
        for element in value:
            if isinstance(element, Mapping):
                found.extend(resolve(element, segments))
        return found
    return []


def _expand(values: list[Any]) -> Iterator[Any]:
    for value in values:
        yield value
        if isinstance(value, list):
            yield from value


# --- Filters ---


def _is_operator_doc(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(key, str) and key.startswith("$") for key in condition)
    )


def _regex_flags(options: str) -> int:
    flags = 0
    for option in options:
        if option == "i":
            flags |= re.IGNORECASE
        elif option == "m":
            flags |= re.MULTILINE
        elif option == "s":
            flags |= re.DOTALL
        elif option == "x":
            flags |= re.VERBOSE
        else:
            raise ValueError(f"Unsupported regex option {option!r}")
    return flags


def _compile(pattern: Any, options: str) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, Regex):
        return re.compile(pattern.pattern, pattern.flags | _regex_flags(options))
    return re.compile(pattern, _regex_flags(options))


def _equals_any(values: list[Any], target: Any) -> bool:
    if isinstance(target, re.Pattern):
        return any(isinstance(v, str) and target.search(v) for v in _expand(values))
    return any(values_equal(value, target) for value in _expand(values))


def _range(values: list[Any], target: Any, accept: Any) -> bool:
    for value in _expand(values):
        if _bracket(value) == _bracket(target) and accept(compare_values(value, target)):
            return True
    return False


def _match_operators(present: list[Any], condition: Mapping[str, Any]) -> bool:
    values = present or [None]
    for op, arg in condition.items():
        if op == "$eq":
            ok = _equals_any(values, arg)
        elif op == "$ne":
            ok = not _equals_any(values, arg)
        elif op == "$gt":
            ok = _range(values, arg, lambda c: c > 0)
        elif op == "$gte":
            ok = _range(values, arg, lambda c: c >= 0)
        elif op == "$lt":
            ok = _range(values, arg, lambda c: c < 0)
        elif op == "$lte":
            ok = _range(values, arg, lambda c: c <= 0)
        elif op == "$in":
            ok = any(_equals_any(values, item) for item in arg)
        elif op == "$nin":
            ok = not any(_equals_any(values, item) for item in arg)
        elif op == "$exists":
            ok = bool(present) == bool(arg)
        elif op == "$regex":
            pattern = _compile(arg, condition.get("$options", ""))
            ok = any(isinstance(v, str) and pattern.search(v) for v in _expand(present))
        elif op == "$options":
            continue
        elif op == "$not":
            ok = not _match_operators(present, arg)
        else:
            raise ValueError(f"Unsupported query operator {op}")
        if not ok:
            return False
    return True


def _match_field(document: Mapping[str, Any], path: str, condition: Any) -> bool:
    present = resolve(document, path.split("."))
    if _is_operator_doc(condition):
        return _match_operators(present, condition)
    return _equals_any(present or [None], condition)


def matches(document: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    """True when `document` satisfies `filter`."""
    for key, condition in (filter or {}).items():
        if key == "$and":
            ok = all(matches(document, sub) for sub in condition)
        elif key == "$or":
            ok = any(matches(document, sub) for sub in condition)
        elif key == "$nor":
            ok = not any(matches(document, sub) for sub in condition)
        elif key.startswith("$"):
            raise ValueError(f"Unsupported query operator {key}")
        else:
            ok = _match_field(document, key, condition)
        if not ok:
            return False
    return True


# --- Sorting ---


def _sort_value(document: Mapping[str, Any], field: str, direction: int) -> Any:
    found = list(_expand(resolve(document, field.split("."))))
    found = [value for value in found if not isinstance(value, list)] or found
    if not found:
        return None
    pick = min if direction > 0 else max
    return pick(found, key=functools.cmp_to_key(compare_values))


def sort_documents(
    documents: list[dict[str, Any]],
    sort: Sequence[tuple[str, int]],
) -> list[dict[str, Any]]:
    """Stable multi-key sort."""

    def order(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
        for field, direction in sort:
            result = compare_values(
                _sort_value(a, field, direction), _sort_value(b, field, direction)
            )
            if result:
                return result * direction
        return 0

    return sorted(documents, key=functools.cmp_to_key(order))


# --- Projection ---


def _include_path(source: Mapping[str, Any], target: dict[str, Any], segments: list[str]) -> None:
    head, rest = segments[0], segments[1:]
    if head not in source:
        return
    value = source[head]
    if not rest:
        target[head] = copy.deepcopy(value)
    elif isinstance(value, Mapping):
        child = target.setdefault(head, {})
        if isinstance(child, dict):
            _include_path(value, child, rest)
    elif isinstance(value, list):
        projected: list[dict[str, Any]] = []
        for element in value:
            if isinstance(element, Mapping):
                out: dict[str, Any] = {}
                _include_path(element, out, rest)
                projected.append(out)
        existing = target.get(head)
        if isinstance(existing, list) and len(existing) == len(projected):
            for merged, extra in zip(existing, projected, strict=True):
                merged.update(extra)
        else:
            target[head] = projected


def _remove_path(target: dict[str, Any], segments: list[str]) -> None:
    head, rest = segments[0], segments[1:]
    if head not in target:
        return
    if not rest:
        del target[head]
        return
    value = target[head]
    if isinstance(value, dict):
        _remove_path(value, rest)
    elif isinstance(value, list):
        for element in value:
            if isinstance(element, dict):
                _remove_path(element, rest)


def _slice(values: list[Any], spec: Any) -> list[Any]:
    if isinstance(spec, int) and not isinstance(spec, bool):
        return values[:spec] if spec >= 0 else values[spec:]
    if isinstance(spec, (list, tuple)) and len(spec) == 2:
        skip, limit = spec
        if limit <= 0:
            raise ValueError("$slice limit must be positive")
        start = max(len(values) + skip, 0) if skip < 0 else skip
        return values[start : start + limit]
    raise ValueError(f"Invalid $slice argument {spec!r}")


def _apply_slice(target: dict[str, Any], segments: list[str], spec: Any) -> None:
    head, rest = segments[0], segments[1:]
    value = target.get(head, _MISSING)
    if rest:
        if isinstance(value, dict):
            _apply_slice(value, rest, spec)
    elif isinstance(value, list):
        target[head] = _slice(value, spec)


def project(document: Mapping[str, Any], projection: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy of `document` shaped by an inclusion/exclusion/$slice projection."""
    if not projection:
        return copy.deepcopy(dict(document))

    slices: dict[str, Any] = {}
    flags: dict[str, bool] = {}
    for path, spec in projection.items():
        if isinstance(spec, Mapping):
            if set(spec) != {"$slice"}:
                raise ValueError(f"Unsupported projection for {path!r}: {spec!r}")
            slices[path] = spec["$slice"]
        else:
            flags[path] = bool(spec)

    included = [path for path, keep in flags.items() if keep and path != "_id"]
    if included:
        result: dict[str, Any] = {}
        if flags.get("_id", True) and "_id" in document:
            result["_id"] = copy.deepcopy(document["_id"])
        for path in [*included, *slices]:
            _include_path(document, result, path.split("."))
    else:
        result = copy.deepcopy(dict(document))
        for path, keep in flags.items():
            if not keep:
                _remove_path(result, path.split("."))

    for path, spec in slices.items():
        _apply_slice(result, path.split("."), spec)
    return result


# --- Updates ---


def _positional_index(
    document: Mapping[str, Any],
    filter: Mapping[str, Any],
    array_path: str,
) -> int:
    array = resolve(document, array_path.split("."))
    elements = array[0] if array and isinstance(array[0], list) else []
    prefix = array_path + "."
    clauses: list[tuple[str, Any]] = []

    def collect(f: Mapping[str, Any]) -> None:
        for key, condition in f.items():
            if key == "$and":
                for sub in condition:
                    collect(sub)
            elif key == array_path or key.startswith(prefix):
                clauses.append((key[len(prefix) :] if key != array_path else "", condition))

    collect(filter)
    for index, element in enumerate(elements):
        for rest, condition in clauses:
            if rest:
                hit = isinstance(element, Mapping) and _match_field(element, rest, condition)
            elif _is_operator_doc(condition):
                hit = _match_operators([element], condition)
            else:
                hit = values_equal(element, condition)
            if hit:
                return index
    raise ValueError("The positional operator did not find the match needed from the query")


def _resolve_positional(
    path: str,
    document: Mapping[str, Any],
    filter: Mapping[str, Any],
) -> list[str]:
    segments = path.split(".")
    if "$" not in segments:
        return segments
    at = segments.index("$")
    index = _positional_index(document, filter, ".".join(segments[:at]))
    return [*segments[:at], str(index), *segments[at + 1 :]]


def _container(document: dict[str, Any], segments: list[str], create: bool) -> Any:
    current: Any = document
    for segment in segments[:-1]:
        if isinstance(current, dict):
            if segment not in current:
                if not create:
                    return None
                current[segment] = {}
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                if not create:
                    return None
                current.extend([None] * (index + 1 - len(current)))
                current[index] = {}
            current = current[index]
        else:
            raise ValueError(f"Cannot create field {segment!r} in element {current!r}")
    return current


def _set(document: dict[str, Any], segments: list[str], value: Any) -> None:
    parent = _container(document, segments, create=True)
    last = segments[-1]
    if isinstance(parent, dict):
        parent[last] = copy.deepcopy(value)
    elif isinstance(parent, list) and last.isdigit():
        index = int(last)
        if index >= len(parent):
            parent.extend([None] * (index + 1 - len(parent)))
        parent[index] = copy.deepcopy(value)
    else:
        raise ValueError(f"Cannot set {'.'.join(segments)!r}")


def _get(document: dict[str, Any], segments: list[str]) -> Any:
    parent = _container(document, segments, create=False)
    last = segments[-1]
    if isinstance(parent, dict):
        return parent.get(last, _MISSING)
    if isinstance(parent, list) and last.isdigit() and int(last) < len(parent):
        return parent[int(last)]
    return _MISSING


def _unset(document: dict[str, Any], segments: list[str]) -> None:
    parent = _container(document, segments, create=False)
    last = segments[-1]
    if isinstance(parent, dict):
        parent.pop(last, None)
    elif isinstance(parent, list) and last.isdigit() and int(last) < len(parent):
        parent[int(last)] = None


def _pull_matches(element: Any, condition: Any) -> bool:
    if _is_operator_doc(condition):
        return _match_operators([element], condition)
    if isinstance(condition, Mapping):
        return isinstance(element, Mapping) and matches(element, condition)
    return values_equal(element, condition)


def apply_update(
    document: dict[str, Any],
    update: Mapping[str, Any],
    filter: Mapping[str, Any],
    inserting: bool = False,
) -> None:
    """Apply update operators to `document` in place."""
    for op, fields in update.items():
        if op == "$setOnInsert":
            if inserting:
                for path, value in fields.items():
                    _set(document, path.split("."), value)
            continue
        for path, arg in fields.items():
            segments = _resolve_positional(path, document, filter)
            if op == "$set":
                _set(document, segments, arg)
            elif op == "$unset":
                _unset(document, segments)
            elif op == "$inc":
                current = _get(document, segments)
                base = 0 if current is _MISSING else current
                if _bracket(base) != 2 or _bracket(arg) != 2:
                    raise ValueError(f"Cannot apply $inc to non-numeric field {path!r}")
                _set(document, segments, base + arg)
            elif op == "$max":
                current = _get(document, segments)
                if current is _MISSING or compare_values(arg, current) > 0:
                    _set(document, segments, arg)
            elif op == "$push":
                current = _get(document, segments)
                if current is _MISSING:
                    current = []
                    _set(document, segments, current)
                    current = _get(document, segments)
                if not isinstance(current, list):
                    raise ValueError(f"The field {path!r} must be an array")
                items = arg["$each"] if isinstance(arg, Mapping) and "$each" in arg else [arg]
                current.extend(copy.deepcopy(list(items)))
            elif op == "$pull":
                current = _get(document, segments)
                if isinstance(current, list):
                    current[:] = [e for e in current if not _pull_matches(e, arg)]
            else:
                raise ValueError(f"Unsupported update operator {op}")


def upsert_seed(filter: Mapping[str, Any]) -> dict[str, Any]:
    """New document holding the filter's equality fields."""
    seed: dict[str, Any] = {}

    def collect(f: Mapping[str, Any]) -> None:
        for key, condition in f.items():
            if key == "$and":
                for sub in condition:
                    collect(sub)
            elif not key.startswith("$") and not _is_operator_doc(condition):
                _set(seed, key.split("."), condition)
            elif not key.startswith("$") and isinstance(condition, Mapping) and "$eq" in condition:
                _set(seed, key.split("."), condition["$eq"])

    collect(filter)
    return seed
