"""
Actor resolution.

A token alone is never trusted: every call re-reads the account so an actor
removed or deactivated after issuance is refused. Bad tokens are
`Unauthenticated`; good tokens for dead accounts are `Forbidden`, so the two
can be told apart in logs.
"""

from __future__ import annotations

import logging
from typing import Callable

from core.errors import Forbidden, Unauthenticated
from core.store import AccountStore

from . import repository, security
from .actors import ACCOUNT_SOURCES, AccountSource, Actor, Role

logger = logging.getLogger(__name__)

TokenDecoder = Callable[[str], security.TokenClaims]


class ActorResolver:
    def __init__(
        self,
        accounts: AccountStore = repository,
        *,
        decode_token: TokenDecoder = security.decode_access_token,
        sources: dict[Role, AccountSource] | None = None,
    ) -> None:
        self._accounts = accounts
        self._decode_token = decode_token
        self._sources = sources or ACCOUNT_SOURCES

    async def resolve(self, token: str) -> Actor:
        try:
            claims = self._decode_token(token)
        except security.AuthSecurityError as exc:
            logger.info("token_rejected reason=%s", exc)
            raise Unauthenticated(str(exc)) from exc

        source = self._sources[claims.role]
        row = await self._accounts.fetch_live_account(source, claims.subject_id)
        if row is None:
            logger.warning("actor_revoked actor_id=%s role=%s", claims.subject_id, claims.role.value)
            raise Forbidden(f"{claims.role.value} account is not active.")

        return Actor(id=claims.subject_id, role=claims.role)
