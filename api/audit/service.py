"""
Audit recording.

The recorder is the only place that decides what happens when the audit
store fails: the failure is logged and dropped. It never reaches the caller
of the primary operation.

Mutations are audited right after the business write, outside its
transaction. If the audit insert fails the mutation stands and the trail is
missing one entry (logged as `audit_write_failed`); the trail is eventually
consistent, the mutation is never lost because of it.
"""

from __future__ import annotations

import logging

from fastapi import BackgroundTasks

from core.store import AuditStore

from . import repository
from .entries import AuditEntry

logger = logging.getLogger(__name__)


class AuditRecorder:
    def __init__(self, store: AuditStore = repository) -> None:
        self._store = store

    async def record(self, entry: AuditEntry) -> None:
        try:
            await self._store.insert_audit_entry(entry)
        except Exception:
            logger.exception(
                "audit_write_failed entry_id=%s actor_id=%s operation=%s target_type=%s target_id=%s",
                entry.id,
                entry.actor_id,
                entry.operation.value,
                entry.target_type,
                entry.target_id,
            )

    async def record_deferred(self, entry: AuditEntry, background: BackgroundTasks | None = None) -> None:
        """
        Fire-and-forget for reads: hand the write to the transport's
        background queue when there is one, otherwise write inline (still
        isolated).
        """
        if background is not None:
            background.add_task(self.record, entry)
            return None
        await self.record(entry)
