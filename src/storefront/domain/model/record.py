"""The facade's generic view of a domain object.

A Record is an insertion-ordered ``dict`` of field name to scalar, nested
dict or list. Collaborators hand records over at the repository boundary;
nothing above that boundary depends on a concrete domain class.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

Record = dict[str, Any]


def record_id(record: Record | None, key: str = "entity_id") -> int | None:
    """Return the integer id of a record, or None for new/unsaved records."""
    if not record:
        return None
    value = record.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_list(value: Any) -> list:
    """Coerce a scalar, comma-separated string or list into a list."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [value]


def is_truthy(value: Any) -> bool:
    """Flags arrive as bools, ints or "0"/"1" strings depending on the store."""
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no")
    return bool(value)


def as_datetime(value: Any) -> datetime | None:
    """Parse a stored timestamp; naive values are taken to be UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
