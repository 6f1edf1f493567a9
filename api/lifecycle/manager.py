"""
Resource lifecycle rules.

- a row with its retention column set is already deleted; every mutation
  on it is a conflict
- each resource type names its own blocking states, lock columns and
  expiry column
- delete is soft wherever a retention column exists, hard otherwise; both go
  through the blocking checks and the reference check first
- create/attach enforces the type's uniqueness tuples

Every write is conditional (`WriteCondition`), so a row that changed between
the check and the write is caught by the store rather than overwritten. A
conditional-write miss is re-read and explained.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, NoReturn
from uuid import UUID

from access.guard import AuthorizationDecision
from access.policy import Action, ResourcePolicy
from core.errors import Conflict, ErrorKind, NotFound
from core.serialization import parse_timestamp
from core.store import DuplicateRecord, ReferencedRecord, ResourceStore

logger = logging.getLogger(__name__)

SOFT = "soft"
HARD = "hard"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DeleteOutcome:
    row: dict[str, Any]
    mode: str


class LifecycleManager:
    def __init__(self, store: ResourceStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def check_mutable(
        self,
        policy: ResourcePolicy,
        resource: Mapping[str, Any],
        action: Action,
    ) -> AuthorizationDecision:
        if not action.is_mutation:
            return AuthorizationDecision.allowed("read")

        if policy.retention_field and resource.get(policy.retention_field) is not None:
            return AuthorizationDecision.denied(ErrorKind.CONFLICT, f"{policy.label} is already deleted.")

        if policy.status_field and policy.blocked_states:
            status = resource.get(policy.status_field)
            message = policy.blocked_states.get(str(status)) if status is not None else None
            if message is not None:
                return AuthorizationDecision.denied(ErrorKind.CONFLICT, message)

        for lock_field, message in policy.lock_fields.items():
            if resource.get(lock_field) is not None:
                return AuthorizationDecision.denied(ErrorKind.CONFLICT, message)

        if policy.expires_field:
            expires_at = parse_timestamp(resource.get(policy.expires_field))
            if expires_at is not None and expires_at <= self._clock():
                return AuthorizationDecision.denied(ErrorKind.CONFLICT, f"{policy.label} has expired.")

        return AuthorizationDecision.allowed("mutable")

    def ensure_mutable(self, policy: ResourcePolicy, resource: Mapping[str, Any], action: Action) -> None:
        self.check_mutable(policy, resource, action).raise_for_denial()

    async def ensure_unique(
        self,
        policy: ResourcePolicy,
        values: Mapping[str, Any],
        *,
        exclude_id: UUID | None = None,
        touched: frozenset[str] | None = None,
    ) -> None:
        for fields in policy.unique_together:
            if touched is not None and touched.isdisjoint(fields):
                continue
            if any(values.get(name) is None for name in fields):
                continue
            exists = await self._store.record_exists(
                policy.table,
                {name: values[name] for name in fields},
                retention_field=policy.retention_field,
                exclude_id=exclude_id,
            )
            if exists:
                raise Conflict(_duplicate_message(policy, fields))

    async def ensure_unreferenced(self, policy: ResourcePolicy, resource: Mapping[str, Any]) -> None:
        for reference in policy.referenced_by:
            in_use = await self._store.record_exists(
                reference.table,
                {reference.field: resource["id"]},
                retention_field=reference.retention_field,
            )
            if in_use:
                raise Conflict(f"{policy.label} is still referenced by {reference.label}.")

    async def create(self, policy: ResourcePolicy, values: Mapping[str, Any]) -> dict[str, Any]:
        await self.ensure_unique(policy, values)
        try:
            return await self._store.insert_resource(policy.table, values)
        except DuplicateRecord as exc:
            # Lost the race against a concurrent insert.
            raise Conflict(f"{policy.label} already exists.") from exc

    async def update(
        self,
        policy: ResourcePolicy,
        resource: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> dict[str, Any]:
        self.ensure_mutable(policy, resource, Action.UPDATE)

        resource_id = resource["id"]
        await self.ensure_unique(
            policy,
            {**resource, **changes},
            exclude_id=resource_id,
            touched=frozenset(changes),
        )

        values = {**changes, "updated_at": self._clock()}
        try:
            updated = await self._store.update_resource(
                policy.table,
                resource_id,
                values,
                condition=policy.write_condition(),
            )
        except DuplicateRecord as exc:
            raise Conflict(f"{policy.label} already exists.") from exc

        if updated is None:
            await self._explain_miss(policy, resource_id, Action.UPDATE)
        return updated  # type: ignore[return-value]

    async def delete(self, policy: ResourcePolicy, resource: Mapping[str, Any]) -> DeleteOutcome:
        self.ensure_mutable(policy, resource, Action.DELETE)
        await self.ensure_unreferenced(policy, resource)

        resource_id = resource["id"]
        condition = policy.write_condition()
        if policy.soft_deletes:
            row = await self._store.soft_delete_resource(policy.table, resource_id, condition=condition)
            mode = SOFT
        else:
            try:
                row = await self._store.hard_delete_resource(policy.table, resource_id, condition=condition)
            except ReferencedRecord as exc:
                raise Conflict(f"{policy.label} is still referenced.") from exc
            mode = HARD

        if row is None:
            await self._explain_miss(policy, resource_id, Action.DELETE)
        logger.info("resource_deleted type=%s id=%s mode=%s", policy.resource_type, resource_id, mode)
        return DeleteOutcome(row=row, mode=mode)  # type: ignore[arg-type]

    async def _explain_miss(self, policy: ResourcePolicy, resource_id: UUID, action: Action) -> NoReturn:
        current = await self._store.fetch_resource(
            policy.table,
            resource_id,
            retention_field=policy.retention_field,
            include_deleted=True,
        )
        if current is None:
            raise NotFound(f"{policy.label} not found.")
        self.ensure_mutable(policy, current, action)
        raise Conflict(f"{policy.label} was modified concurrently.")


def _duplicate_message(policy: ResourcePolicy, fields: tuple[str, ...]) -> str:
    return f"{policy.label} already exists for ({', '.join(fields)})."
