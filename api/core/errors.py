"""
Error taxonomy shared by every component.

Components raise these; only the HTTP edge (`main.py`) turns them into
responses. Messages are caller-facing and never carry storage details.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"


class AccessError(RuntimeError):
    kind: ErrorKind
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(AccessError):
    """Token missing, malformed, expired or badly signed."""

    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401


class Forbidden(AccessError):
    """Actor is proven but not entitled (includes revoked accounts)."""

    kind = ErrorKind.FORBIDDEN
    status_code = 403


class NotFound(AccessError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class Conflict(AccessError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class ValidationFailed(AccessError):
    kind = ErrorKind.VALIDATION
    status_code = 400


_BY_KIND: dict[ErrorKind, type[AccessError]] = {
    ErrorKind.UNAUTHENTICATED: Unauthenticated,
    ErrorKind.FORBIDDEN: Forbidden,
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.CONFLICT: Conflict,
    ErrorKind.VALIDATION: ValidationFailed,
}


def error_for(kind: ErrorKind, detail: str) -> AccessError:
    return _BY_KIND[kind](detail)
