"""
Ownership guard.

Decides whether an actor may act on a resource. Precedence:

1. direct ownership (the owner column for the actor's role holds actor.id)
2. participation (actor listed in the resource's participants join)
3. chain ownership (1-2 applied to each parent hop)
4. administrative override (bypasses 1-3)

Roles a type marks owner-only stop after step 1. Shared readers may read
any live row of a lookup type.

A missing row at any hop is reported as "not found". An ownership mismatch
on a row that does exist follows the resource type's `denial` setting.
Decisions only read; calling twice without a state change gives the same
answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping
from uuid import UUID

from auth.actors import Actor
from core.errors import ErrorKind, error_for
from core.store import ResourceStore

from .policy import Action, Denial, PolicyCatalog, ResourcePolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceRef:
    resource_type: str
    resource_id: UUID


@dataclass(frozen=True)
class AuthorizationDecision:
    allow: bool
    reason: str | None = None
    denial: ErrorKind | None = None

    @classmethod
    def allowed(cls, reason: str) -> AuthorizationDecision:
        return cls(allow=True, reason=reason)

    @classmethod
    def denied(cls, denial: ErrorKind, reason: str) -> AuthorizationDecision:
        return cls(allow=False, reason=reason, denial=denial)

    def raise_for_denial(self) -> None:
        if self.allow:
            return None
        raise error_for(self.denial or ErrorKind.FORBIDDEN, self.reason or "Access denied.")


class _BrokenChain(Exception):
    def __init__(self, label: str) -> None:
        super().__init__(label)
        self.label = label


def same_id(value: Any, actor_id: UUID) -> bool:
    return value is not None and str(value) == str(actor_id)


class OwnershipGuard:
    def __init__(self, store: ResourceStore, catalog: PolicyCatalog) -> None:
        self._store = store
        self._catalog = catalog

    async def authorize(self, actor: Actor, ref: ResourceRef, action: Action) -> AuthorizationDecision:
        decision, _ = await self._evaluate(actor, ref, action)
        return decision

    async def enforce(self, actor: Actor, ref: ResourceRef, action: Action) -> dict[str, Any]:
        """
        Authorize and return the row; raise the mapped error on denial.

        Mutation targets are read including soft-deleted rows so the
        lifecycle check can report them as already deleted.
        """
        decision, row = await self._evaluate(actor, ref, action)
        if not decision.allow or row is None:
            logger.info(
                "access_denied actor_id=%s role=%s action=%s type=%s id=%s denial=%s",
                actor.id,
                actor.role.value,
                action.value,
                ref.resource_type,
                ref.resource_id,
                decision.denial.value if decision.denial else None,
            )
            decision.raise_for_denial()
        return row  # type: ignore[return-value]

    async def authorize_create(
        self,
        actor: Actor,
        policy: ResourcePolicy,
        values: Mapping[str, Any],
    ) -> AuthorizationDecision:
        if Action.CREATE not in policy.actions_for(actor.role):
            return self._role_denied(actor, policy, Action.CREATE)

        is_admin = actor.role in policy.admin_roles
        owns_new_row = policy.owner_field_for(actor.role) is not None

        if policy.parent is None:
            if is_admin:
                return AuthorizationDecision.allowed("admin")
            if owns_new_row:
                return AuthorizationDecision.allowed("owner")
            return AuthorizationDecision.denied(
                ErrorKind.FORBIDDEN,
                f"{actor.role.value} has no ownership path to create {policy.label.lower()}.",
            )

        self_attach = owns_new_row and actor.role in policy.self_attach_roles
        return await self.authorize_parent(
            actor,
            policy,
            values.get(policy.parent.field),
            attach_any=is_admin or self_attach,
        )

    async def authorize_parent(
        self,
        actor: Actor,
        policy: ResourcePolicy,
        parent_id: Any,
        *,
        attach_any: bool = False,
    ) -> AuthorizationDecision:
        """
        Authorize working under a parent row: creating a child in it or
        listing its children. The parent must be live; unless `attach_any`
        the actor must relate to it the same way a read of it would.
        """
        parent_policy = self._catalog.parent_of(policy)
        if parent_policy is None or policy.parent is None:
            return AuthorizationDecision.denied(
                ErrorKind.VALIDATION,
                f"{policy.label} has no parent resource.",
            )

        parsed_id = _as_uuid(parent_id)
        if parsed_id is None:
            return AuthorizationDecision.denied(
                ErrorKind.VALIDATION,
                f"{policy.parent.field} must be a valid id.",
            )

        parent_row = await self._fetch(parent_policy, parsed_id, include_deleted=False)
        if parent_row is None:
            return _not_found(parent_policy)
        if attach_any or actor.role in parent_policy.admin_roles:
            return AuthorizationDecision.allowed("attach" if attach_any else "parent admin")

        try:
            relation = await self._relation(actor, parent_policy, parent_row, depth=0)
        except _BrokenChain as exc:
            return AuthorizationDecision.denied(ErrorKind.NOT_FOUND, f"{exc.label} not found.")
        if relation is not None:
            return AuthorizationDecision.allowed(f"{relation} of {parent_policy.resource_type}")
        return _ownership_denied(parent_policy)

    async def enforce_create(self, actor: Actor, policy: ResourcePolicy, values: Mapping[str, Any]) -> None:
        decision = await self.authorize_create(actor, policy, values)
        self._raise_unless(decision, actor, Action.CREATE, policy)

    async def enforce_parent(self, actor: Actor, policy: ResourcePolicy, parent_id: Any) -> None:
        """Listing children of a parent: READ on the child type plus a relation to the parent."""
        if Action.READ not in policy.actions_for(actor.role):
            decision = self._role_denied(actor, policy, Action.READ)
        else:
            decision = await self.authorize_parent(
                actor,
                policy,
                parent_id,
                attach_any=actor.role in policy.admin_roles,
            )
        self._raise_unless(decision, actor, Action.READ, policy)

    @staticmethod
    def _raise_unless(
        decision: AuthorizationDecision,
        actor: Actor,
        action: Action,
        policy: ResourcePolicy,
    ) -> None:
        if decision.allow:
            return None
        logger.info(
            "access_denied actor_id=%s role=%s action=%s type=%s denial=%s",
            actor.id,
            actor.role.value,
            action.value,
            policy.resource_type,
            decision.denial.value if decision.denial else None,
        )
        decision.raise_for_denial()

    async def _evaluate(
        self,
        actor: Actor,
        ref: ResourceRef,
        action: Action,
    ) -> tuple[AuthorizationDecision, dict[str, Any] | None]:
        policy = self._catalog.get(ref.resource_type)
        if action not in policy.actions_for(actor.role):
            return self._role_denied(actor, policy, action), None

        row = await self._fetch(policy, ref.resource_id, include_deleted=action.is_mutation)
        if row is None:
            return _not_found(policy), None

        if actor.role in policy.admin_roles:
            return AuthorizationDecision.allowed("admin"), row
        if action is Action.READ and actor.role in policy.shared_read_roles:
            return AuthorizationDecision.allowed("shared"), row

        try:
            relation = await self._relation(actor, policy, row, depth=0)
        except _BrokenChain as exc:
            return AuthorizationDecision.denied(ErrorKind.NOT_FOUND, f"{exc.label} not found."), None

        if relation is None:
            return _ownership_denied(policy), None
        return AuthorizationDecision.allowed(relation), row

    async def _relation(
        self,
        actor: Actor,
        policy: ResourcePolicy,
        row: Mapping[str, Any],
        *,
        depth: int,
    ) -> str | None:
        owner_field = policy.owner_field_for(actor.role)
        if owner_field is not None and same_id(row.get(owner_field), actor.id):
            return "owner"
        if actor.role in policy.owner_only_roles:
            return None

        participation = policy.participation
        if participation is not None and actor.role in participation.roles:
            is_participant = await self._store.record_exists(
                participation.table,
                {participation.scope_field: row["id"], participation.actor_field: actor.id},
                retention_field=participation.retention_field,
            )
            if is_participant:
                return "participant"

        parent_policy = self._catalog.parent_of(policy)
        if parent_policy is None or policy.parent is None:
            return None

        parent_id = _as_uuid(row.get(policy.parent.field))
        if parent_id is None:
            return None
        if depth >= PolicyCatalog.MAX_CHAIN_DEPTH:
            raise RuntimeError(f"Parent chain of {policy.resource_type} is too deep.")

        parent_row = await self._fetch(parent_policy, parent_id, include_deleted=False)
        if parent_row is None:
            raise _BrokenChain(parent_policy.label)

        relation = await self._relation(actor, parent_policy, parent_row, depth=depth + 1)
        if relation is None:
            return None
        return f"{relation} of {parent_policy.resource_type}"

    async def _fetch(
        self,
        policy: ResourcePolicy,
        resource_id: UUID,
        *,
        include_deleted: bool,
    ) -> dict[str, Any] | None:
        return await self._store.fetch_resource(
            policy.table,
            resource_id,
            retention_field=policy.retention_field,
            include_deleted=include_deleted,
        )

    @staticmethod
    def _role_denied(actor: Actor, policy: ResourcePolicy, action: Action) -> AuthorizationDecision:
        return AuthorizationDecision.denied(
            ErrorKind.FORBIDDEN,
            f"{actor.role.value} may not {action.value.lower()} {policy.label.lower()}.",
        )


def _not_found(policy: ResourcePolicy) -> AuthorizationDecision:
    return AuthorizationDecision.denied(ErrorKind.NOT_FOUND, f"{policy.label} not found.")


def _ownership_denied(policy: ResourcePolicy) -> AuthorizationDecision:
    if policy.denial is Denial.REVEAL:
        message = policy.forbidden_message or f"You can only access your own {policy.label.lower()}."
        return AuthorizationDecision.denied(ErrorKind.FORBIDDEN, message)
    return _not_found(policy)


def _as_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
