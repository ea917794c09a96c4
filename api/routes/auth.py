"""
api/routes/auth.py -- Registration, login, logout and identity endpoints.

Routes:
  POST /register    -- create an account; 201, or 409 duplicate_username
  POST /login       -- password login; sets the session cookie
  GET  /logout      -- destroys the session, clears the cookie; 200
  GET  /me          -- current account (requires a valid session)
  POST /logout/all  -- destroys every session of the current user

Security:
  POST /login and POST /register are rate-limited per client IP.
  Login failures return one generic error whether the username or the
  password was wrong (no username enumeration). AuthService.login runs bcrypt
  on both paths, so timing does not tell them apart either.
  Cache-Control: no-store on every response that sets or reflects a session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PrincipalResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from auth.dependencies import clear_session_cookie, get_principal, set_session_cookie
from auth.errors import AuthError, DuplicateUsername, InvalidCredentials, Unauthenticated
from auth.models import Principal
from auth.service import AuthService
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /register:   public -- rate limited
# - POST /login:      public -- rate limited
# - GET  /logout:     public -- ending a session needs no valid session
# - GET  /me:         requires a session (get_principal)
# - POST /logout/all: requires a session (get_principal)
router = APIRouter()


def _error(exc: AuthError) -> JSONResponse:
    resp = JSONResponse(
        status_code=exc.status,
        content=ErrorResponse(error=ErrorDetail(**exc.to_dict())).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a new account.

    The password is hashed off the event loop before the single atomic insert.
    A duplicate username is an expected outcome and comes back as 409, not as
    an unhandled fault.
    """
    service: AuthService = request.app.state.auth_service
    try:
        user = await service.register(body.username, body.email, body.password)
    except DuplicateUsername as exc:
        return _error(exc)

    resp = JSONResponse(
        status_code=201,
        content=RegisterResponse(
            user=UserResponse(
                id=user.id,
                username=user.username,
                email=user.email,
                created_at=user.created_at or "",
            )
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_settings.login_rate_limit)
@router.post("/login", response_model=LoginResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set the session cookie.

    On success any session the client already held is destroyed, so a login
    always hands out a fresh identifier (session fixation guard).
    """
    service: AuthService = request.app.state.auth_service
    try:
        session_id, principal = await service.login(
            body.username,
            body.password,
            previous_session_id=request.cookies.get(_settings.session_cookie_name),
        )
    except InvalidCredentials as exc:
        return _error(exc)

    ttl = service.sessions.ttl_seconds
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            user=PrincipalResponse(user_id=principal.user_id, username=principal.username),
            expires_in=ttl,
        ).model_dump(),
    )
    set_session_cookie(resp, session_id, max_age=ttl)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Destroy the current session (if any) and clear the cookie. Always 200."""
    service: AuthService = request.app.state.auth_service
    service.logout(request.cookies.get(_settings.session_cookie_name))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(request: Request, principal: Principal = Depends(get_principal)) -> MeResponse:
    """Return the account behind the principal bound by the access guard.

    A session whose user record is gone is treated as no session at all.
    """
    service: AuthService = request.app.state.auth_service
    user = service.current_user(principal)
    if user is None:
        service.logout(request.cookies.get(_settings.session_cookie_name))
        raise HTTPException(status_code=Unauthenticated.status, detail=Unauthenticated().to_dict())
    return MeResponse(user_id=user.id, username=user.username, email=user.email)


@router.post("/logout/all", response_model=MessageResponse)
def logout_all(request: Request, principal: Principal = Depends(get_principal)) -> JSONResponse:
    """Revoke every session of the current user, this one included."""
    service: AuthService = request.app.state.auth_service
    revoked = service.logout_everywhere(principal)
    resp = JSONResponse(content=MessageResponse(message=f"Logged out of {revoked} session(s).").model_dump())
    clear_session_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp
