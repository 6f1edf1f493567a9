"""
Audit trail persistence (append-only insert).

Satisfies `core.store.AuditStore`.
"""

from __future__ import annotations

import json
from typing import Any

from core import db
from core.serialization import normalize_value

from .entries import AuditEntry


def _json_arg(value: dict[str, Any]) -> str:
    """
    asyncpg does not encode dicts for jsonb parameters; pass text and cast.
    """
    return json.dumps(normalize_value(value), ensure_ascii=True)


async def insert_audit_entry(entry: AuditEntry) -> None:
    await db.execute(
        """
        INSERT INTO audit_trails (
          id, actor_id, actor_role, operation_type,
          target_type, target_id, event_detail, created_at
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8)
        """,
        entry.id,
        entry.actor_id,
        entry.actor_role,
        entry.operation.value,
        entry.target_type,
        entry.target_id,
        _json_arg(entry.detail),
        entry.created_at,
    )
