"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

The session identifier arrives in the session cookie (name from
Settings.session_cookie_name). AccessGuard resolves it; on success the
Principal is bound to request.state.principal. request.state belongs to one
request, so nothing about the user outlives the request or leaks into a
concurrent one.

try_get_principal() is the soft variant (returns None on failure).
get_principal() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, Response

from auth.errors import Unauthenticated
from auth.guard import AccessGuard
from auth.models import Principal
from core.config import get_settings


def try_get_principal(request: Request) -> Principal | None:
    """Authenticate the request from its session cookie.

    Returns the Principal on success, None on any failure. Never raises for
    an invalid session -- callers that need a hard 401 use get_principal().
    StoreUnavailable still propagates: an outage is not "logged out".
    """
    guard: AccessGuard = request.app.state.guard
    session_id = request.cookies.get(get_settings().session_cookie_name)
    try:
        principal = guard.authenticate(session_id)
    except Unauthenticated:
        return None
    request.state.principal = principal
    return principal


def get_principal(request: Request, response: Response) -> Principal:
    """Require authentication. Raises HTTP 401 if the request has no valid session.

    With sliding expiration on, resolve() has just pushed the server-side
    expiry forward, so the cookie is re-issued with a fresh Max-Age to keep
    the browser copy alive as long as the session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=Unauthenticated.status,
            detail=Unauthenticated().to_dict(),
        )
    sessions = request.app.state.sessions
    if sessions.sliding:
        session_id = request.cookies[get_settings().session_cookie_name]
        set_session_cookie(response, session_id, max_age=sessions.ttl_seconds)
    return principal


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, session_id: str, max_age: int) -> None:
    """Write the session identifier as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite: "lax" or "strict" from settings -- never "none".
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the session TTL so both expire together.
    """
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        value=session_id,
        httponly=True,
        samesite=settings.session_cookie_samesite,
        secure=settings.secure_cookies,
        max_age=max_age,
    )


def clear_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite=settings.session_cookie_samesite,
        secure=settings.secure_cookies,
    )
