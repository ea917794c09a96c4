"""
auth/interfaces.py -- Persistence contracts consumed by the auth core.

The verifier, session manager and service depend on these Protocols, never on
a concrete backend. auth/store.py (SQLAlchemy) and auth/memory.py (in-process)
both satisfy them; tests and alternative deployments pick one at wiring time.

Concurrency contract: every method is atomic with respect to every other
method on the same key. Implementations raise StoreUnavailable for
infrastructure faults and never retry.
"""

from __future__ import annotations

from typing import Protocol

from auth.models import SessionRecord, User


class CredentialStore(Protocol):
    def register(self, username: str, email: str, password_hash: str) -> User:
        """Insert a new user. Raises DuplicateUsername if the username exists."""
        ...

    def find_by_username(self, username: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


class SessionStore(Protocol):
    def insert(self, record: SessionRecord) -> bool:
        """Store a new record. Returns False if session_key is already present."""
        ...

    def get(self, session_key: str) -> SessionRecord | None: ...

    def delete(self, session_key: str) -> bool: ...

    def pop_expired(self, session_key: str, now: float) -> bool:
        """Atomically delete the record if it expired before now. True if deleted."""
        ...

    def expired_keys(self, now: float, limit: int) -> list[str]: ...

    def touch(self, session_key: str, expires_at: float) -> bool: ...

    def delete_for_user(self, user_id: str) -> int: ...

    def close(self) -> None: ...
