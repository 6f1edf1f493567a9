"""
Wiring of the resource service to the Postgres-backed stores.

Tests replace `get_resource_service` through `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from access.guard import OwnershipGuard
from audit import repository as audit_repository
from audit.service import AuditRecorder
from lifecycle.manager import LifecycleManager

from . import repository
from .catalog import CATALOG
from .service import ResourceService


@lru_cache(maxsize=1)
def get_resource_service() -> ResourceService:
    return ResourceService(
        catalog=CATALOG,
        store=repository,
        guard=OwnershipGuard(repository, CATALOG),
        lifecycle=LifecycleManager(repository),
        audit=AuditRecorder(audit_repository),
    )
