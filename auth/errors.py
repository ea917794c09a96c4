"""
auth/errors.py -- Exception taxonomy for the auth core.

Every error the core raises on purpose derives from AuthError, which carries
the HTTP status and machine-readable code the API layer renders. Messages are
deliberately generic: they never say which credential was wrong, whether a
username exists, or why a session was rejected.

SessionNotFound / SessionExpired are internal to the session manager and the
guard. They are not AuthError subclasses because they must never reach a
client -- the guard folds both into Unauthenticated.
"""

from __future__ import annotations

from http import HTTPStatus


class AuthError(Exception):
    code: str = "auth_error"
    status: HTTPStatus = HTTPStatus.BAD_REQUEST
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class DuplicateUsername(AuthError):
    code = "duplicate_username"
    status = HTTPStatus.CONFLICT
    message = "That username is already taken."


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status = HTTPStatus.UNAUTHORIZED
    message = "Invalid username or password."


class Unauthenticated(AuthError):
    code = "unauthenticated"
    status = HTTPStatus.UNAUTHORIZED
    message = "Authentication required."


class StoreUnavailable(AuthError):
    """Infrastructure fault from a persistence backend. Not retried by the core."""

    code = "internal_error"
    status = HTTPStatus.SERVICE_UNAVAILABLE
    message = "An unexpected error occurred."


# ---------------------------------------------------------------------------
# Session manager outcomes
# ---------------------------------------------------------------------------


class SessionError(Exception):
    pass


class SessionNotFound(SessionError):
    pass


class SessionExpired(SessionError):
    pass
