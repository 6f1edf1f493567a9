"""
Resource operations: the single path every handler goes through.

Order per operation: validate the payload shape, authorize (guard), apply
lifecycle rules and write, then audit. Nothing reaches the store for a
caller the guard rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping
from uuid import UUID, uuid4

from fastapi import BackgroundTasks

from access.guard import OwnershipGuard, ResourceRef
from access.policy import Action, PolicyCatalog, ResourcePolicy
from audit.entries import AuditEntry
from audit.service import AuditRecorder
from auth.actors import Actor
from core.errors import Forbidden, ValidationFailed
from core.serialization import normalize_row, parse_timestamp
from core.store import ResourceStore
from lifecycle.manager import LifecycleManager, utc_now
from listing.builder import Page, QueryBuilder

logger = logging.getLogger(__name__)

SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at"})


def _field_list(names: set[str] | frozenset[str]) -> str:
    return ", ".join(sorted(names))


def _with_timestamps(policy: ResourcePolicy, values: Mapping[str, Any]) -> dict[str, Any]:
    converted = dict(values)
    for name in policy.temporal_fields & set(values):
        if values[name] is None:
            continue
        parsed = parse_timestamp(values[name])
        if parsed is None:
            raise ValidationFailed(f"{name} must be an ISO-8601 timestamp.")
        converted[name] = parsed
    return converted


class ResourceService:
    def __init__(
        self,
        *,
        catalog: PolicyCatalog,
        store: ResourceStore,
        guard: OwnershipGuard,
        lifecycle: LifecycleManager,
        audit: AuditRecorder,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._guard = guard
        self._lifecycle = lifecycle
        self._audit = audit
        self._clock = clock

    @property
    def catalog(self) -> PolicyCatalog:
        return self._catalog

    async def get(
        self,
        actor: Actor,
        resource_type: str,
        resource_id: UUID,
        *,
        background: BackgroundTasks | None = None,
    ) -> dict[str, Any]:
        policy = self._catalog.get(resource_type)
        row = await self._guard.enforce(actor, ResourceRef(resource_type, resource_id), Action.READ)

        if policy.audit_reads:
            entry = AuditEntry.create(
                actor,
                Action.READ,
                target_type=policy.resource_type,
                target_id=resource_id,
                detail={"access": "detail"},
            )
            await self._audit.record_deferred(entry, background)
        return normalize_row(row)

    async def list_page(
        self,
        actor: Actor,
        resource_type: str,
        *,
        filters: Mapping[str, Any] | None = None,
        sort: str | None = None,
        order: str | None = None,
        page: Any = None,
        limit: Any = None,
        parent_id: UUID | None = None,
        background: BackgroundTasks | None = None,
    ) -> dict[str, Any]:
        policy = self._catalog.get(resource_type)
        scope = await self._list_scope(actor, policy, parent_id)

        query = QueryBuilder(policy.listing_spec()).build(
            filters,
            sort,
            order,
            page,
            limit,
            scope=scope,
        )
        rows, total = await self._store.fetch_page(policy.table, query)
        result = Page.build([normalize_row(row) for row in rows], total, query)

        if policy.audit_reads:
            entry = AuditEntry.create(
                actor,
                Action.READ,
                target_type=policy.resource_type,
                target_id=parent_id,
                detail={"access": "list", "scope": scope, "records": len(result.data)},
            )
            await self._audit.record_deferred(entry, background)
        return result.to_dict()

    async def _list_scope(
        self,
        actor: Actor,
        policy: ResourcePolicy,
        parent_id: UUID | None,
    ) -> dict[str, Any]:
        """
        The filters every listed row must match, derived from the actor.
        Administrators and shared readers get no scope; everyone else lists
        either the children of a parent they relate to or the rows they own.
        """
        if parent_id is not None:
            if policy.parent is None:
                raise ValidationFailed(f"{policy.label} has no parent resource.")
            await self._guard.enforce_parent(actor, policy, parent_id)
            scope = {policy.parent.field: parent_id}
            if actor.role in policy.owner_only_roles and actor.role not in policy.admin_roles:
                scope[policy.owner_fields[actor.role]] = actor.id
            return scope

        if Action.READ not in policy.actions_for(actor.role):
            raise Forbidden(f"{actor.role.value} may not read {policy.label.lower()}.")
        if actor.role in policy.admin_roles or actor.role in policy.shared_read_roles:
            return {}

        owner_field = policy.owner_field_for(actor.role)
        if owner_field is not None:
            return {owner_field: actor.id}

        if policy.parent is not None:
            raise Forbidden(f"{policy.label} must be listed through its {policy.parent.field}.")
        raise Forbidden(f"{actor.role.value} has no ownership path to list {policy.label.lower()}.")

    async def create(self, actor: Actor, resource_type: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        policy = self._catalog.get(resource_type)
        values = self._creation_values(actor, policy, payload)

        await self._guard.enforce_create(actor, policy, values)

        now = self._clock()
        row = await self._lifecycle.create(
            policy,
            {"id": uuid4(), **values, "created_at": now, "updated_at": now},
        )
        after = normalize_row(row)
        logger.info("resource_created type=%s id=%s actor_id=%s", policy.resource_type, after.get("id"), actor.id)

        await self._audit.record(
            AuditEntry.create(
                actor,
                Action.CREATE,
                target_type=policy.resource_type,
                target_id=row["id"],
                detail={"after": after},
            )
        )
        return after

    async def update(
        self,
        actor: Actor,
        resource_type: str,
        resource_id: UUID,
        changes: Mapping[str, Any],
    ) -> dict[str, Any]:
        policy = self._catalog.get(resource_type)
        values = self._update_values(policy, changes)

        row = await self._guard.enforce(actor, ResourceRef(resource_type, resource_id), Action.UPDATE)
        updated = await self._lifecycle.update(policy, row, values)

        before, after = normalize_row(row), normalize_row(updated)
        await self._audit.record(
            AuditEntry.create(
                actor,
                Action.UPDATE,
                target_type=policy.resource_type,
                target_id=resource_id,
                detail={"before": before, "after": after, "changed_fields": sorted(values)},
            )
        )
        return after

    async def delete(self, actor: Actor, resource_type: str, resource_id: UUID) -> dict[str, Any]:
        policy = self._catalog.get(resource_type)
        row = await self._guard.enforce(actor, ResourceRef(resource_type, resource_id), Action.DELETE)
        outcome = await self._lifecycle.delete(policy, row)

        after = normalize_row(outcome.row)
        await self._audit.record(
            AuditEntry.create(
                actor,
                Action.DELETE,
                target_type=policy.resource_type,
                target_id=resource_id,
                detail={"mode": outcome.mode, "before": normalize_row(row)},
            )
        )
        return after

    @staticmethod
    def _creation_values(actor: Actor, policy: ResourcePolicy, payload: Mapping[str, Any]) -> dict[str, Any]:
        allowed = policy.writable_fields | policy.reference_fields
        unknown = set(payload) - allowed
        if unknown:
            raise ValidationFailed(f"Unknown or read-only fields: {_field_list(unknown)}.")

        values = dict(payload)
        owner_field = policy.owner_field_for(actor.role)
        if owner_field is not None and actor.role not in policy.admin_roles:
            # The creator always owns what they create.
            values[owner_field] = actor.id
        return _with_timestamps(policy, values)

    @staticmethod
    def _update_values(policy: ResourcePolicy, changes: Mapping[str, Any]) -> dict[str, Any]:
        if not changes:
            raise ValidationFailed("No fields to update.")

        fixed = set(changes) & (policy.reference_fields | SYSTEM_FIELDS)
        if policy.retention_field and policy.retention_field in changes:
            fixed.add(policy.retention_field)
        if fixed:
            raise ValidationFailed(f"Fields cannot be changed after creation: {_field_list(fixed)}.")

        unknown = set(changes) - policy.writable_fields
        if unknown:
            raise ValidationFailed(f"Unknown or read-only fields: {_field_list(unknown)}.")
        return _with_timestamps(policy, changes)
