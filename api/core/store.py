"""
Store contracts the core depends on.

Components receive an object satisfying these protocols instead of reaching
for a global handle. The asyncpg repository modules (`auth/repository.py`,
`resources/repository.py`, `audit/repository.py`) satisfy them structurally;
tests pass in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from audit.entries import AuditEntry
    from auth.actors import AccountSource
    from listing.builder import BoundedQuery


class StoreError(RuntimeError):
    pass


class DuplicateRecord(StoreError):
    """A unique constraint rejected an insert or update."""


class ReferencedRecord(StoreError):
    """A foreign key still points at the row being hard-deleted."""


@dataclass(frozen=True)
class WriteCondition:
    """
    Predicate a conditional write must still satisfy at write time.

    Turns the lifecycle read-then-write into a single compare-and-swap.
    """

    retention_field: str | None = "deleted_at"
    status_field: str | None = None
    blocked_states: tuple[str, ...] = ()
    unset_fields: tuple[str, ...] = ()
    expires_field: str | None = None


class AccountStore(Protocol):
    async def fetch_live_account(self, source: AccountSource, account_id: UUID) -> dict[str, Any] | None:
        ...


class ResourceStore(Protocol):
    async def fetch_resource(
        self,
        table: str,
        resource_id: UUID,
        *,
        retention_field: str | None,
        include_deleted: bool = False,
    ) -> dict[str, Any] | None:
        ...

    async def record_exists(
        self,
        table: str,
        match: Mapping[str, Any],
        *,
        retention_field: str | None,
        exclude_id: UUID | None = None,
    ) -> bool:
        ...

    async def fetch_page(self, table: str, query: BoundedQuery) -> tuple[list[dict[str, Any]], int]:
        ...

    async def insert_resource(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        ...

    async def update_resource(
        self,
        table: str,
        resource_id: UUID,
        values: Mapping[str, Any],
        *,
        condition: WriteCondition,
    ) -> dict[str, Any] | None:
        ...

    async def soft_delete_resource(
        self,
        table: str,
        resource_id: UUID,
        *,
        condition: WriteCondition,
    ) -> dict[str, Any] | None:
        ...

    async def hard_delete_resource(
        self,
        table: str,
        resource_id: UUID,
        *,
        condition: WriteCondition,
    ) -> dict[str, Any] | None:
        ...


class AuditStore(Protocol):
    async def insert_audit_entry(self, entry: AuditEntry) -> None:
        ...
