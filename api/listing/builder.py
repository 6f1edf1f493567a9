"""
Bounded list queries.

`QueryBuilder.build` turns caller filter/sort/page input into a query that is
always bounded (clamped limit), only touches whitelisted columns, and always
carries the caller's scope. Unknown sort keys and out-of-range paging fall
back to the documented defaults; the only input rejected is a range bound
that is not a timestamp.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from core.errors import ValidationFailed
from core.serialization import parse_timestamp

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_ORDER = "desc"

RANGE_BOUNDS = ("gte", "lte")


@dataclass(frozen=True)
class ListingSpec:
    """The per-resource whitelist the builder works against."""

    filter_fields: frozenset[str]
    range_fields: frozenset[str]
    sort_fields: frozenset[str]
    default_sort: str = "created_at"
    retention_field: str | None = "deleted_at"


@dataclass(frozen=True)
class DateRange:
    field: str
    gte: Any = None
    lte: Any = None


@dataclass(frozen=True)
class BoundedQuery:
    filters: dict[str, Any] = field(default_factory=dict)
    ranges: tuple[DateRange, ...] = ()
    sort_field: str = "created_at"
    sort_order: str = DEFAULT_ORDER
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    retention_field: str | None = "deleted_at"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def resolve_page(page: Any) -> int:
    return _positive_int(page, DEFAULT_PAGE)


def resolve_limit(limit: Any) -> int:
    return min(_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)


def resolve_sort(spec: ListingSpec, sort: str | None, order: str | None) -> tuple[str, str]:
    raw = (sort or "").strip()
    # "-field" is accepted as shorthand for descending order.
    if raw.startswith(("-", "+")):
        order = order or ("desc" if raw[0] == "-" else "asc")
        raw = raw[1:]

    sort_field = raw if raw in spec.sort_fields else spec.default_sort
    sort_order = (order or "").strip().lower()
    if sort_order not in {"asc", "desc"}:
        sort_order = DEFAULT_ORDER
    return sort_field, sort_order


def _bound(name: str, bound: str, value: Any) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationFailed(f"{name}.{bound} must be an ISO-8601 timestamp.")
    return parsed


def _range_for(name: str, value: Any) -> DateRange | None:
    if not isinstance(value, Mapping):
        return None
    bounds = {
        bound: _bound(name, bound, value.get(bound)) for bound in RANGE_BOUNDS if value.get(bound) is not None
    }
    if not bounds:
        return None
    return DateRange(field=name, **bounds)


class QueryBuilder:
    def __init__(self, spec: ListingSpec) -> None:
        self._spec = spec

    def build(
        self,
        filters: Mapping[str, Any] | None,
        sort: str | None = None,
        order: str | None = None,
        page: Any = None,
        limit: Any = None,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> BoundedQuery:
        spec = self._spec
        equality: dict[str, Any] = {}
        ranges: list[DateRange] = []

        for name, value in (filters or {}).items():
            if name in spec.range_fields:
                date_range = _range_for(name, value)
                if date_range is not None:
                    ranges.append(date_range)
            elif name in spec.filter_fields and value is not None and not isinstance(value, Mapping):
                equality[name] = value

        # Scope is applied last so caller values of the same name never win.
        for name, value in (scope or {}).items():
            equality[name] = value
            ranges = [r for r in ranges if r.field != name]

        sort_field, sort_order = resolve_sort(spec, sort, order)
        return BoundedQuery(
            filters=equality,
            ranges=tuple(ranges),
            sort_field=sort_field,
            sort_order=sort_order,
            page=resolve_page(page),
            limit=resolve_limit(limit),
            retention_field=spec.retention_field,
        )


def page_count(records: int, limit: int) -> int:
    if limit <= 0:
        raise ValueError("limit must be positive.")
    return math.ceil(records / limit)


@dataclass(frozen=True)
class Page:
    current: int
    limit: int
    records: int
    pages: int
    data: list[dict[str, Any]]

    @classmethod
    def build(cls, rows: list[dict[str, Any]], total: int, query: BoundedQuery) -> Page:
        return cls(
            current=query.page,
            limit=query.limit,
            records=total,
            pages=page_count(total, query.limit),
            data=rows,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pagination": {
                "current": self.current,
                "limit": self.limit,
                "records": self.records,
                "pages": self.pages,
            },
            "data": self.data,
        }
