"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores own persistence,
services and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class User:
    """A registered identity.

    id is an opaque uuid4 hex string assigned by the store. username is the
    unique, case-sensitive login name. password_hash is the bcrypt string --
    it is excluded from repr() so it can never leak through a log line or a
    traceback that formats the record.
    """

    id: str
    username: str
    email: str
    password_hash: str = field(repr=False)
    created_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated identity bound to a single request."""

    user_id: str
    username: str


@dataclass
class SessionRecord:
    """Server-side session state.

    session_key is HMAC-SHA256(SECRET_KEY, raw_session_id). The raw identifier
    only ever exists in the client's cookie; the store never sees it.

    username is a snapshot taken at login. Usernames are immutable identity
    fields, so the copy cannot go stale and the guard never needs a user lookup.

    created_at / expires_at are POSIX seconds (float), compared against the
    session manager's clock.
    """

    session_key: str
    user_id: str
    username: str
    created_at: float
    expires_at: float

    def principal(self) -> Principal:
        return Principal(user_id=self.user_id, username=self.username)

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at
