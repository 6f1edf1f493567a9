"""
Generic resource persistence (raw SQL).

Satisfies `core.store.ResourceStore`. Table and column names come from the
policy catalog only and are quoted; every value is a positional parameter.
Storage errors that carry meaning (unique and foreign-key violations) are
translated to store errors here so no driver text travels further up.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

import asyncpg

from core import db
from core.store import DuplicateRecord, ReferencedRecord, WriteCondition
from listing.builder import BoundedQuery

q = db.quote_ident


class _Params:
    """Collects positional arguments and hands out their placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _condition_sql(condition: WriteCondition, params: _Params) -> list[str]:
    clauses: list[str] = []
    if condition.retention_field:
        clauses.append(f"{q(condition.retention_field)} IS NULL")
    if condition.status_field and condition.blocked_states:
        placeholder = params.add(list(condition.blocked_states))
        clauses.append(
            f"({q(condition.status_field)} IS NULL OR {q(condition.status_field)} <> ALL({placeholder}::text[]))"
        )
    for name in condition.unset_fields:
        clauses.append(f"{q(name)} IS NULL")
    if condition.expires_field:
        clauses.append(f"({q(condition.expires_field)} IS NULL OR {q(condition.expires_field)} > now())")
    return clauses


def _where_sql(query: BoundedQuery, params: _Params) -> str:
    clauses: list[str] = []
    if query.retention_field:
        clauses.append(f"{q(query.retention_field)} IS NULL")
    for name, value in query.filters.items():
        clauses.append(f"{q(name)} = {params.add(value)}")
    for date_range in query.ranges:
        if date_range.gte is not None:
            clauses.append(f"{q(date_range.field)} >= {params.add(date_range.gte)}")
        if date_range.lte is not None:
            clauses.append(f"{q(date_range.field)} <= {params.add(date_range.lte)}")
    return " AND ".join(clauses) if clauses else "true"


async def fetch_resource(
    table: str,
    resource_id: UUID,
    *,
    retention_field: str | None,
    include_deleted: bool = False,
) -> dict[str, Any] | None:
    live = f"AND {q(retention_field)} IS NULL" if retention_field and not include_deleted else ""
    return await db.fetch_one(
        f"""
        SELECT *
        FROM {q(table)}
        WHERE id = $1
          {live}
        LIMIT 1
        """,
        resource_id,
    )


async def record_exists(
    table: str,
    match: Mapping[str, Any],
    *,
    retention_field: str | None,
    exclude_id: UUID | None = None,
) -> bool:
    params = _Params()
    clauses = [f"{q(name)} = {params.add(value)}" for name, value in match.items()]
    if retention_field:
        clauses.append(f"{q(retention_field)} IS NULL")
    if exclude_id is not None:
        clauses.append(f"id <> {params.add(exclude_id)}")

    row = await db.fetch_one(
        f"""
        SELECT 1 AS ok
        FROM {q(table)}
        WHERE {" AND ".join(clauses) or "true"}
        LIMIT 1
        """,
        *params.values,
    )
    return row is not None


async def fetch_page(table: str, query: BoundedQuery) -> tuple[list[dict[str, Any]], int]:
    params = _Params()
    where = _where_sql(query, params)
    filter_args = list(params.values)

    direction = "ASC" if query.sort_order == "asc" else "DESC"
    limit_ph = params.add(query.limit)
    offset_ph = params.add(query.offset)

    async with db.snapshot() as conn:
        # Tie-break on id so consecutive pages never overlap.
        rows = await conn.fetch(
            f"""
            SELECT *
            FROM {q(table)}
            WHERE {where}
            ORDER BY {q(query.sort_field)} {direction}, id {direction}
            LIMIT {limit_ph}
            OFFSET {offset_ph}
            """,
            *params.values,
        )
        total = await conn.fetchval(
            f"""
            SELECT count(*)
            FROM {q(table)}
            WHERE {where}
            """,
            *filter_args,
        )
    return [dict(row) for row in rows], int(total or 0)


async def insert_resource(table: str, values: Mapping[str, Any]) -> dict[str, Any]:
    params = _Params()
    columns = ", ".join(q(name) for name in values)
    placeholders = ", ".join(params.add(value) for value in values.values())
    try:
        row = await db.fetch_one(
            f"""
            INSERT INTO {q(table)} ({columns})
            VALUES ({placeholders})
            RETURNING *
            """,
            *params.values,
        )
    except asyncpg.UniqueViolationError as exc:
        raise DuplicateRecord(table) from exc
    if row is None:
        raise RuntimeError(f"Failed to insert into {table}.")
    return row


async def update_resource(
    table: str,
    resource_id: UUID,
    values: Mapping[str, Any],
    *,
    condition: WriteCondition,
) -> dict[str, Any] | None:
    params = _Params()
    assignments = ", ".join(f"{q(name)} = {params.add(value)}" for name, value in values.items())
    clauses = [f"id = {params.add(resource_id)}", *_condition_sql(condition, params)]
    try:
        return await db.fetch_one(
            f"""
            UPDATE {q(table)}
            SET {assignments}
            WHERE {" AND ".join(clauses)}
            RETURNING *
            """,
            *params.values,
        )
    except asyncpg.UniqueViolationError as exc:
        raise DuplicateRecord(table) from exc


async def soft_delete_resource(
    table: str,
    resource_id: UUID,
    *,
    condition: WriteCondition,
) -> dict[str, Any] | None:
    if not condition.retention_field:
        raise ValueError(f"{table} has no retention column.")
    params = _Params()
    clauses = [f"id = {params.add(resource_id)}", *_condition_sql(condition, params)]
    return await db.fetch_one(
        f"""
        UPDATE {q(table)}
        SET {q(condition.retention_field)} = now(),
            updated_at = now()
        WHERE {" AND ".join(clauses)}
        RETURNING *
        """,
        *params.values,
    )


async def hard_delete_resource(
    table: str,
    resource_id: UUID,
    *,
    condition: WriteCondition,
) -> dict[str, Any] | None:
    params = _Params()
    clauses = [f"id = {params.add(resource_id)}", *_condition_sql(condition, params)]
    try:
        return await db.fetch_one(
            f"""
            DELETE FROM {q(table)}
            WHERE {" AND ".join(clauses)}
            RETURNING *
            """,
            *params.values,
        )
    except asyncpg.ForeignKeyViolationError as exc:
        raise ReferencedRecord(table) from exc
