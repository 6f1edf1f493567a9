"""
DTO normalization.

Every row leaving the core goes through `normalize_row` so date fields have a
single wire shape regardless of what the driver returned.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping
from uuid import UUID


def to_iso(value: datetime) -> str:
    """
    ISO-8601 in UTC with a `Z` suffix and millisecond precision.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_value(value: Any) -> Any:
    # datetime is a subclass of date; check it first.
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value


def normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key): normalize_value(value) for key, value in row.items()}


def parse_timestamp(value: Any) -> datetime | None:
    """
    Accept a datetime or an ISO-8601 string (a trailing `Z` is allowed).

    Naive values are taken to be UTC. Anything unparsable gives None.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
