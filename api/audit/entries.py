"""
Audit trail entry.

Entries are append-only: built once, inserted once, never updated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from access.policy import Action
from auth.actors import Actor


@dataclass(frozen=True)
class AuditEntry:
    id: UUID
    actor_id: UUID
    actor_role: str
    operation: Action
    target_type: str
    target_id: UUID | None
    detail: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        actor: Actor,
        operation: Action,
        *,
        target_type: str,
        target_id: UUID | None,
        detail: dict[str, Any] | None = None,
    ) -> AuditEntry:
        return cls(
            id=uuid4(),
            actor_id=actor.id,
            actor_role=actor.role.value,
            operation=operation,
            target_type=target_type,
            target_id=target_id,
            detail=dict(detail or {}),
        )
