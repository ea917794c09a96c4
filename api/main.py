"""
api/main.py -- FastAPI application entry point for SessionAuth.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, auth services, sweep task) and shutdown
(cancel sweep task, close stores) symmetrically.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.credentials import CredentialVerifier
from auth.errors import AuthError, StoreUnavailable
from auth.guard import AccessGuard
from auth.interfaces import CredentialStore, SessionStore
from auth.service import AuthService
from auth.sessions import SessionManager
from auth.store import SqlSessionStore, SqlUserStore
from core.config import Settings, get_settings
from core.logs import configure_logging

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

configure_logging(_settings.log_level)
logger = logging.getLogger("sessionauth.api")

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def configure_auth(
    app: FastAPI,
    users: CredentialStore,
    session_store: SessionStore,
    settings: Settings,
    *,
    verifier: CredentialVerifier | None = None,
    clock: Callable[[], float] = time.time,
) -> None:
    """Build the auth components over the given stores and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    object graph; only the stores (and optionally the clock) differ.
    """
    sessions = SessionManager(
        session_store,
        settings.secret_key,
        settings.session_ttl_seconds,
        sliding=settings.session_sliding,
        clock=clock,
    )
    app.state.user_store = users
    app.state.session_store = session_store
    app.state.sessions = sessions
    app.state.guard = AccessGuard(sessions)
    app.state.auth_service = AuthService(
        users,
        verifier or CredentialVerifier(rounds=settings.bcrypt_rounds),
        sessions,
    )


# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: int) -> None:
    """Purge expired sessions every `interval` seconds.

    resolve() already refuses expired sessions; this only bounds storage for
    sessions nobody comes back for. The sweep runs in the thread pool because
    a SQL-backed store blocks. A failed sweep is logged and retried on the
    next tick, so one bad pass never ends the task. CancelledError from
    task.cancel() during shutdown propagates out of the awaits.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(app.state.sessions.sweep)
        except StoreUnavailable:
            logger.warning("Session sweep skipped: store unavailable")
        except Exception:  # noqa: BLE001
            logger.exception("Session sweep failed")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("SessionAuth API starting up")
    configure_auth(
        app,
        SqlUserStore(_settings.database_url),
        SqlSessionStore(_settings.database_url),
        _settings,
    )
    logger.info(
        "Auth initialized (session_ttl=%ds, sliding=%s)",
        _settings.session_ttl_seconds,
        _settings.session_sliding,
    )
    app.state.sweep_task = asyncio.create_task(_sweep_loop(app, _settings.session_sweep_interval_seconds))

    yield

    app.state.sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.sweep_task
    app.state.session_store.close()
    app.state.user_store.close()
    logger.info("SessionAuth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SessionAuth API",
    description="Session-backed authentication: registration, login, logout and guarded routes.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any AuthError that escaped a route with its own status and code.

    StoreUnavailable lands here: the client gets a generic message, the
    store already logged the cause.
    """
    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status,
        content=ErrorResponse(error=ErrorDetail(**exc.to_dict())).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc.detail),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation.

    Only field locations and messages are echoed -- never the submitted
    values, which may include a password.
    """
    problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=problems,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the server log only, never to the
    response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit -- health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and store connectivity."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
