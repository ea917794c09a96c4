"""
auth/sessions.py -- Server-side session lifecycle.

Sessions are opaque server-side state rather than self-describing signed
tokens, so destroy() revokes access immediately and unconditionally.

Lifecycle per session:
    create() -> ACTIVE -> EXPIRED   (resolve() after expires_at, or sweep())
                       -> DESTROYED (destroy(), destroy_all_for_user())
Both terminal states are absorbing: the identifier is never reissued.

Identifiers:
  secrets.token_urlsafe(32) -- 256 bits from the OS CSPRNG. The store is keyed
  by HMAC-SHA256(SECRET_KEY, raw_id), so a copy of the sessions table cannot
  be replayed as cookies, and lookups stay O(1) on an indexed column.

Expiry:
  resolve() evicts an expired record as a side effect (lazy expiry) through
  the store's atomic pop_expired(). Exactly one caller sees SessionExpired;
  every later resolve() of that id raises SessionNotFound. sweep() bounds
  memory for sessions nobody comes back for.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from collections.abc import Callable

from auth.errors import SessionExpired, SessionNotFound
from auth.interfaces import SessionStore
from auth.models import Principal, SessionRecord

logger = logging.getLogger("sessionauth.sessions")

# token_urlsafe(32) yields 43 characters; anything far longer is not ours and
# is rejected before it is hashed.
_MAX_SESSION_ID_LENGTH = 128
_MAX_CREATE_ATTEMPTS = 3


def generate_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionManager:
    """Issues, resolves, expires and destroys sessions.

    clock returns POSIX seconds. It is injectable so expiry can be tested
    without sleeping.
    """

    def __init__(
        self,
        store: SessionStore,
        secret_key: str,
        ttl_seconds: int = 3600,
        *,
        sliding: bool = False,
        clock: Callable[[], float] = time.time,
        sweep_batch_size: int = 500,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.sliding = sliding
        self.clock = clock
        self.sweep_batch_size = sweep_batch_size
        self._secret = secret_key.encode("utf-8")

    def session_key(self, session_id: str) -> str:
        """Return the storage key for a raw session identifier."""
        return hmac.new(self._secret, session_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def create(self, principal: Principal, ttl: int | None = None) -> str:
        """Start a session for principal and return the raw identifier.

        The raw identifier goes to the client exactly once; only its HMAC is
        stored.
        """
        duration = ttl if ttl is not None else self.ttl_seconds
        if duration <= 0:
            raise ValueError("ttl must be positive")
        for _ in range(_MAX_CREATE_ATTEMPTS):
            session_id = generate_session_id()
            now = self.clock()
            record = SessionRecord(
                session_key=self.session_key(session_id),
                user_id=principal.user_id,
                username=principal.username,
                created_at=now,
                expires_at=now + duration,
            )
            if self.store.insert(record):
                logger.info("Session created for user=%s ttl=%ds", principal.username, duration)
                return session_id
        # Three 256-bit collisions in a row means the RNG is broken.
        raise RuntimeError("Could not allocate a unique session identifier")

    def resolve(self, session_id: str | None) -> Principal:
        """Return the principal bound to session_id.

        Raises SessionExpired if the session outlived expires_at (and evicts
        it), SessionNotFound if it never existed, was destroyed, or was
        already evicted.
        """
        if not session_id or len(session_id) > _MAX_SESSION_ID_LENGTH:
            raise SessionNotFound()
        key = self.session_key(session_id)
        now = self.clock()
        if self.store.pop_expired(key, now):
            logger.info("Session expired on access")
            raise SessionExpired()
        record = self.store.get(key)
        if record is None:
            raise SessionNotFound()
        # pop_expired() ran against the same instant, so a record found here
        # has expires_at >= now. The check guards stores whose get() and
        # pop_expired() see different snapshots.
        if record.is_expired(now):
            self.store.delete(key)
            raise SessionExpired()
        if self.sliding:
            self.store.touch(key, now + self.ttl_seconds)
        return record.principal()

    def destroy(self, session_id: str | None) -> None:
        """Remove the session. Destroying an absent session is not an error."""
        if not session_id or len(session_id) > _MAX_SESSION_ID_LENGTH:
            return
        if self.store.delete(self.session_key(session_id)):
            logger.info("Session destroyed")

    def destroy_all_for_user(self, user_id: str) -> int:
        """Revoke every session belonging to user_id. Returns the count removed."""
        removed = self.store.delete_for_user(user_id)
        if removed:
            logger.info("Revoked %d session(s) for user_id=%s", removed, user_id)
        return removed

    def sweep(self) -> int:
        """Delete expired sessions one record at a time. Returns the count removed."""
        now = self.clock()
        removed = 0
        while True:
            keys = self.store.expired_keys(now, self.sweep_batch_size)
            batch_removed = sum(1 for key in keys if self.store.pop_expired(key, now))
            removed += batch_removed
            if len(keys) < self.sweep_batch_size or batch_removed == 0:
                break
        if removed:
            logger.info("Session sweep removed %d expired session(s)", removed)
        return removed
