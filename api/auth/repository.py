"""
Account lookups (raw SQL).

Satisfies `core.store.AccountStore`.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from core import db

from .actors import AccountSource


async def fetch_live_account(source: AccountSource, account_id: UUID) -> dict[str, Any] | None:
    """
    Return the account row only while it is live (not soft-deleted and,
    where the table has the flag, active).
    """
    table = db.quote_ident(source.table)
    conditions = [
        "id = $1",
        f"{db.quote_ident(source.retention_field)} IS NULL",
    ]
    if source.active_field:
        conditions.append(f"{db.quote_ident(source.active_field)} = true")

    return await db.fetch_one(
        f"""
        SELECT id
        FROM {table}
        WHERE {" AND ".join(conditions)}
        LIMIT 1
        """,
        account_id,
    )
