"""Filter and sort evaluation for record stores that hold records in memory.

Stores hand back values the way they were written: ids may be ints in one
file and strings in another, so scalar comparison falls back to the
string form.
"""

from __future__ import annotations

from typing import Any

from storefront.domain.model.record import Record
from storefront.domain.repository.record_repository import Filters


def _same(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    if actual is None or expected is None or isinstance(actual, (dict, list)):
        return False
    return str(actual) == str(expected)


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        return any(_same(value, expected) for value in actual)
    return _same(actual, expected)


def _ordered(value: Any) -> tuple:
    try:
        return (0, float(value), "")
    except (TypeError, ValueError):
        return (1, 0.0, str(value))


def _apply(op: str, actual: Any, expected: Any) -> bool:
    if op == "eq":
        return _equals(actual, expected)
    if op == "neq":
        return not _equals(actual, expected)
    if op == "in":
        return any(_equals(actual, value) for value in expected)
    if op == "nin":
        return not any(_equals(actual, value) for value in expected)
    if op in ("gt", "lt"):
        if actual is None:
            return False
        if op == "gt":
            return _ordered(actual) > _ordered(expected)
        return _ordered(actual) < _ordered(expected)
    raise ValueError(f"Unsupported filter operator: {op}")


def matches(record: Record, filters: Filters) -> bool:
    for name, condition in filters.items():
        actual = record.get(name)
        if isinstance(condition, dict):
            if not all(_apply(op, actual, expected) for op, expected in condition.items()):
                return False
        elif not _equals(actual, condition):
            return False
    return True


def sort_records(records: list[Record], sort: str | None) -> list[Record]:
    """Order records by a ``"field ASC|DESC"`` clause; missing values last."""
    if not sort:
        return list(records)
    name, _, direction = sort.strip().partition(" ")
    descending = direction.strip().upper() == "DESC"

    present = [r for r in records if r.get(name) is not None]
    missing = [r for r in records if r.get(name) is None]
    present.sort(key=lambda r: _ordered(r[name]), reverse=descending)
    return present + missing
