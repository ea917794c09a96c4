"""
auth/guard.py -- Access guard: session identifier in, principal out.

Missing, unknown, destroyed and expired sessions all fail the same way. The
caller learns only "not authenticated", never which of those it was.
"""

from __future__ import annotations

import logging

from auth.errors import SessionExpired, SessionNotFound, Unauthenticated
from auth.models import Principal
from auth.sessions import SessionManager

logger = logging.getLogger("sessionauth.guard")


class AccessGuard:
    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions

    def authenticate(self, session_id: str | None) -> Principal:
        """Resolve session_id to a Principal or raise Unauthenticated."""
        try:
            return self.sessions.resolve(session_id)
        except SessionExpired as exc:
            logger.debug("Rejected request: session expired")
            raise Unauthenticated() from exc
        except SessionNotFound as exc:
            raise Unauthenticated() from exc
