"""
Auth dependencies for protected FastAPI routes.

Routes receive a typed `Actor` as a normal argument; they never decode tokens
themselves.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header

from core.errors import Forbidden, Unauthenticated

from .actors import Actor, Role
from .service import ActorResolver

_resolver = ActorResolver()


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise Unauthenticated("Missing Authorization header.")

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise Unauthenticated("Invalid Authorization header format.")

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise Unauthenticated("Authorization must be: Bearer <token>.")
    return token


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


def get_actor_resolver() -> ActorResolver:
    return _resolver


async def get_current_actor(
    access_token: str = Depends(get_bearer_token),
    resolver: ActorResolver = Depends(get_actor_resolver),
) -> Actor:
    return await resolver.resolve(access_token)


def require_roles(*roles: Role) -> Callable[..., object]:
    allowed = frozenset(roles)

    async def _dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise Forbidden(f"Role {actor.role.value} may not call this endpoint.")
        return actor

    return _dependency
