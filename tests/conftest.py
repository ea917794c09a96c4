"""
tests/conftest.py -- Shared test fixtures for SessionAuth.

This module provides:
  - FakeClock: injectable clock so expiry tests never sleep
  - user_store / session_store: parametrized over the memory and SQL backends
  - sessions: SessionManager over session_store with a fake clock
  - make_client(): TestClient factory with a patched lifespan
  - client: TestClient over fresh stores, parametrized over both backends

Design: SQL stores use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync dependencies in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. A uuid in the name keeps every test's database private.

Environment variables must be set before any core/auth/api import so
get_settings() picks them up: DEBUG auto-generates SECRET_KEY, the rate
limits are raised so the suite never trips them, and bcrypt runs at its
minimum cost.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, configure_auth
from auth.credentials import CredentialVerifier
from auth.memory import MemorySessionStore, MemoryUserStore
from auth.sessions import SessionManager
from auth.store import SqlSessionStore, SqlUserStore
from core.config import get_settings

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"
TEST_TTL = 60


class FakeClock:
    """Callable clock returning POSIX seconds; advance() moves time forward."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def shared_memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def verifier() -> CredentialVerifier:
    """Minimum-cost verifier; the dummy hash is computed once per session."""
    return CredentialVerifier(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "sql"])
def user_store(request):
    store = MemoryUserStore() if request.param == "memory" else SqlUserStore(shared_memory_url("users"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def session_store(request):
    store = MemorySessionStore() if request.param == "memory" else SqlSessionStore(shared_memory_url("sessions"))
    yield store
    store.close()


@pytest.fixture
def sessions(session_store, clock: FakeClock) -> SessionManager:
    return SessionManager(session_store, TEST_SECRET, TEST_TTL, clock=clock)


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(users, session_store, verifier: CredentialVerifier, clock: FakeClock):
    """Return an async context manager that replaces the real lifespan.

    Wires the given stores into app.state through the same configure_auth()
    the real lifespan uses. No sweep task -- tests call sweep() directly.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        configure_auth(app, users, session_store, get_settings(), verifier=verifier, clock=clock)
        yield

    return test_lifespan


@pytest.fixture
def make_client(verifier: CredentialVerifier, clock: FakeClock) -> Generator[Callable[..., TestClient], None, None]:
    """Factory: make_client(users, session_store) -> started TestClient.

    base_url uses localhost so TrustedHostMiddleware accepts the requests.
    """
    started: list[TestClient] = []

    def _make(users, session_store) -> TestClient:
        app.router.lifespan_context = _patch_lifespan(users, session_store, verifier, clock)
        limiter.reset()
        client = TestClient(app, base_url="http://localhost", raise_server_exceptions=True)
        client.__enter__()
        started.append(client)
        return client

    yield _make

    for client in started:
        client.__exit__(None, None, None)


@pytest.fixture(params=["memory", "sql"])
def client(request, make_client) -> Generator[TestClient, None, None]:
    if request.param == "memory":
        users, session_store = MemoryUserStore(), MemorySessionStore()
    else:
        url = shared_memory_url("api")
        users, session_store = SqlUserStore(url), SqlSessionStore(url)
    yield make_client(users, session_store)
    users.close()
    session_store.close()
