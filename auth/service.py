"""
auth/service.py -- Registration, login and logout flows.

AuthService composes the credential store, the verifier and the session
manager. Route handlers call it; it never sees a Request or a Response.

Cancellation: the only await point in register() is the password hash. A
request cancelled there has written nothing. The insert that follows is a
single atomic store call, so a user record either exists completely or not
at all.
"""

from __future__ import annotations

import logging

from auth.credentials import CredentialVerifier
from auth.errors import InvalidCredentials
from auth.interfaces import CredentialStore
from auth.models import Principal, User
from auth.sessions import SessionManager

logger = logging.getLogger("sessionauth.auth")


class AuthService:
    def __init__(self, users: CredentialStore, verifier: CredentialVerifier, sessions: SessionManager) -> None:
        self.users = users
        self.verifier = verifier
        self.sessions = sessions

    async def register(self, username: str, email: str, password: str) -> User:
        """Create a user. Raises DuplicateUsername if the username is taken."""
        password_hash = await self.verifier.hash_async(password)
        user = self.users.register(username, email, password_hash)
        logger.info("Registered user=%s", user.username)
        return user

    async def login(
        self,
        username: str,
        password: str,
        previous_session_id: str | None = None,
    ) -> tuple[str, Principal]:
        """Verify credentials and start a session.

        Returns (raw session id, principal). Raises InvalidCredentials for an
        unknown username and for a wrong password alike; both paths run one
        bcrypt comparison so they take the same time.

        previous_session_id is the session the client already held. It is
        destroyed before the new one is created, so a login never leaves the
        old identifier usable (session fixation guard) and a store failure
        while revoking it never leaves an orphaned new session.
        """
        user = self.users.find_by_username(username)
        matched = await self.verifier.verify_async(password, user.password_hash if user else None)
        if user is None or not matched:
            logger.info("Failed login attempt")
            raise InvalidCredentials()
        self.sessions.destroy(previous_session_id)
        principal = Principal(user_id=user.id, username=user.username)
        session_id = self.sessions.create(principal)
        logger.info("Login succeeded for user=%s", user.username)
        return session_id, principal

    def logout(self, session_id: str | None) -> None:
        """End the session. Safe to call with a missing or already-ended session."""
        self.sessions.destroy(session_id)

    def logout_everywhere(self, principal: Principal) -> int:
        """End every session of principal's user. Returns the count revoked."""
        revoked = self.sessions.destroy_all_for_user(principal.user_id)
        logger.info("Logged out all sessions for user=%s", principal.username)
        return revoked

    def current_user(self, principal: Principal) -> User | None:
        """Load the full user record behind an authenticated principal."""
        return self.users.get_by_id(principal.user_id)
