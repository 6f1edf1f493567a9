"""
Per-resource-type policy table.

One `ResourcePolicy` describes everything the guard, the lifecycle manager
and the query builder need to know about a resource type: who owns a row,
who participates in it, which parent it hangs off, which states lock it and
which columns callers may touch. Handlers never re-derive these rules.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from auth.actors import Role
from core.errors import NotFound
from core.store import WriteCondition
from listing.builder import ListingSpec


class Action(str, enum.Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    @property
    def is_mutation(self) -> bool:
        return self is not Action.READ


ALL_ACTIONS = frozenset(Action)
READ_ONLY = frozenset({Action.READ})
READ_UPDATE = frozenset({Action.READ, Action.UPDATE})


class Denial(str, enum.Enum):
    """How an ownership mismatch on an existing row is reported."""

    MASK = "mask"  # answer "not found", hide existence
    REVEAL = "reveal"  # answer "forbidden"


@dataclass(frozen=True)
class ParentLink:
    field: str
    resource_type: str


@dataclass(frozen=True)
class Participation:
    """Join table listing actors taking part in a resource."""

    table: str
    scope_field: str
    actor_field: str
    roles: frozenset[Role]
    retention_field: str | None = "deleted_at"


@dataclass(frozen=True)
class Reference:
    """Table whose live rows block deletion of the referenced row."""

    table: str
    field: str
    label: str
    retention_field: str | None = "deleted_at"


@dataclass(frozen=True)
class ResourcePolicy:
    resource_type: str
    table: str
    label: str
    permissions: Mapping[Role, frozenset[Action]]
    writable_fields: frozenset[str] = frozenset()

    # authorization
    owner_fields: Mapping[Role, str] = field(default_factory=dict)
    participation: Participation | None = None
    parent: ParentLink | None = None
    admin_roles: frozenset[Role] = frozenset({Role.SYSTEM_ADMIN})
    # Roles that may attach a row they own to any live parent (self-join).
    self_attach_roles: frozenset[Role] = frozenset()
    # Roles that reach a row only through their own owner column; neither
    # participation nor the parent chain counts for them.
    owner_only_roles: frozenset[Role] = frozenset()
    # Roles that may read every live row (lookup tables).
    shared_read_roles: frozenset[Role] = frozenset()
    denial: Denial = Denial.MASK
    forbidden_message: str = ""

    # lifecycle
    retention_field: str | None = "deleted_at"
    status_field: str | None = "status"
    blocked_states: Mapping[str, str] = field(default_factory=dict)
    lock_fields: Mapping[str, str] = field(default_factory=dict)
    expires_field: str | None = None
    unique_together: tuple[tuple[str, ...], ...] = ()
    referenced_by: tuple[Reference, ...] = ()

    # listing
    filter_fields: frozenset[str] = frozenset()
    range_fields: frozenset[str] = frozenset({"created_at"})
    sort_fields: frozenset[str] = frozenset({"created_at", "updated_at"})
    default_sort: str = "created_at"

    audit_reads: bool = False

    def actions_for(self, role: Role) -> frozenset[Action]:
        if role in self.admin_roles:
            return ALL_ACTIONS
        return self.permissions.get(role, frozenset())

    def owner_field_for(self, role: Role) -> str | None:
        return self.owner_fields.get(role)

    @property
    def reference_fields(self) -> frozenset[str]:
        """Columns that bind a row to actors or its parent; fixed after create."""
        fields = set(self.owner_fields.values())
        if self.parent is not None:
            fields.add(self.parent.field)
        return frozenset(fields)

    @property
    def temporal_fields(self) -> frozenset[str]:
        """Columns holding timestamps; JSON callers send these as ISO-8601 text."""
        fields = set(self.range_fields) | set(self.lock_fields)
        if self.expires_field:
            fields.add(self.expires_field)
        return frozenset(fields)

    @property
    def soft_deletes(self) -> bool:
        return self.retention_field is not None

    def listing_spec(self) -> ListingSpec:
        return ListingSpec(
            filter_fields=self.filter_fields,
            range_fields=self.range_fields,
            sort_fields=self.sort_fields,
            default_sort=self.default_sort,
            retention_field=self.retention_field,
        )

    def write_condition(self) -> WriteCondition:
        return WriteCondition(
            retention_field=self.retention_field,
            status_field=self.status_field if self.blocked_states else None,
            blocked_states=tuple(self.blocked_states),
            unset_fields=tuple(self.lock_fields),
            expires_field=self.expires_field,
        )


class PolicyCatalog:
    """Validated lookup of policies by resource type."""

    MAX_CHAIN_DEPTH = 8

    def __init__(self, policies: Iterable[ResourcePolicy]) -> None:
        self._policies: dict[str, ResourcePolicy] = {}
        for policy in policies:
            if policy.resource_type in self._policies:
                raise ValueError(f"Duplicate policy for {policy.resource_type}.")
            self._policies[policy.resource_type] = policy
        self._validate()

    def _validate(self) -> None:
        for policy in self._policies.values():
            for mapping in (policy.permissions, policy.owner_fields):
                for role in mapping:
                    if not isinstance(role, Role):
                        raise ValueError(f"{policy.resource_type}: {role!r} is not a Role.")
            for role in policy.owner_only_roles:
                if policy.owner_field_for(role) is None:
                    raise ValueError(f"{policy.resource_type}: owner-only role {role.value} has no owner field.")
            for role in policy.shared_read_roles:
                if Action.READ not in policy.actions_for(role):
                    raise ValueError(f"{policy.resource_type}: shared reader {role.value} may not read.")
            if policy.default_sort not in policy.sort_fields:
                raise ValueError(f"{policy.resource_type}: default sort must be sortable.")
            if policy.parent is not None and policy.parent.resource_type not in self._policies:
                raise ValueError(
                    f"{policy.resource_type}: unknown parent type {policy.parent.resource_type}."
                )
            self._chain_depth(policy)

    def _chain_depth(self, policy: ResourcePolicy) -> int:
        seen = {policy.resource_type}
        depth = 0
        current = policy
        while current.parent is not None:
            depth += 1
            current = self._policies[current.parent.resource_type]
            if current.resource_type in seen or depth > self.MAX_CHAIN_DEPTH:
                raise ValueError(f"{policy.resource_type}: parent chain is cyclic or too deep.")
            seen.add(current.resource_type)
        return depth

    def get(self, resource_type: str) -> ResourcePolicy:
        policy = self._policies.get(resource_type)
        if policy is None:
            raise NotFound(f"Unknown resource type: {resource_type}.")
        return policy

    def parent_of(self, policy: ResourcePolicy) -> ResourcePolicy | None:
        if policy.parent is None:
            return None
        return self._policies[policy.parent.resource_type]

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._policies

    def __iter__(self):
        return iter(self._policies.values())

    def __len__(self) -> int:
        return len(self._policies)
