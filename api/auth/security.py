"""
Access-token helpers (the token-verification collaborator).

Tokens carry `sub` (actor UUID), `role`, `type="access"`, `iat`, `exp` and,
when JWT_ISSUER is set, `iss`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from uuid import UUID

import jwt

from core import settings

from .actors import Role


class AuthSecurityError(RuntimeError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    subject_id: UUID
    role: Role


def jwt_secret() -> str:
    # Local default keeps development simple.
    # In production, set JWT_SECRET in environment.
    return settings.env_str("JWT_SECRET", "dev-change-this-secret")


def jwt_algorithm() -> str:
    return settings.env_str("JWT_ALG", "HS256")


def jwt_issuer() -> str:
    return settings.env_str("JWT_ISSUER", "")


def access_token_expire_minutes() -> int:
    return settings.env_int("ACCESS_TOKEN_EXPIRE_MIN", 60)


def now_epoch_s() -> int:
    return int(time.time())


def build_access_token(*, actor_id: UUID, role: Role, expires_in_s: int | None = None) -> str:
    issued_at = now_epoch_s()
    lifetime = access_token_expire_minutes() * 60 if expires_in_s is None else expires_in_s

    payload = {
        "sub": str(actor_id),
        "role": role.value,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    issuer = jwt_issuer()
    if issuer:
        payload["iss"] = issuer
    return jwt.encode(payload, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str) -> TokenClaims:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    issuer = jwt_issuer()
    try:
        payload = jwt.decode(
            raw,
            jwt_secret(),
            algorithms=[jwt_algorithm()],
            issuer=issuer or None,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("Access token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    token_type = str(payload.get("type") or "").strip().lower()
    if token_type != "access":
        raise AuthSecurityError("Token is not an access token.")

    try:
        subject_id = UUID(str(payload.get("sub") or ""))
    except ValueError as exc:
        raise AuthSecurityError("Invalid access token subject.") from exc

    try:
        role = Role.parse(str(payload.get("role") or ""))
    except ValueError as exc:
        raise AuthSecurityError("Invalid access token role.") from exc

    return TokenClaims(subject_id=subject_id, role=role)
