"""Unit tests for auth/store.py and auth/memory.py -- the persistence backends.

Every test that takes user_store / session_store runs against both the
memory and the SQL backend (see conftest.py), so the two stay contract-equal.

Covers:
- register() returns a full record with an opaque id
- duplicate usernames fail and never alter the existing record
- usernames are case-sensitive
- empty identity fields are rejected with no side effects
- concurrent registrations of one username: exactly one wins
- session store: duplicate keys, conditional expiry, touch, per-user revoke
- SQL failures surface as StoreUnavailable
"""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import text

from auth.errors import DuplicateUsername, StoreUnavailable
from auth.memory import MemoryUserStore
from auth.models import SessionRecord
from auth.store import SqlSessionStore, SqlUserStore

# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class TestUserStore:
    def test_register_returns_record(self, user_store) -> None:
        user = user_store.register("alice", "a@x.com", "$2b$04$hash")
        assert user.username == "alice"
        assert user.email == "a@x.com"
        assert user.password_hash == "$2b$04$hash"
        assert user.id and len(user.id) == 32
        assert user.created_at

    def test_find_by_username(self, user_store) -> None:
        created = user_store.register("alice", "a@x.com", "$2b$04$hash")
        found = user_store.find_by_username("alice")
        assert found == created

    def test_find_missing_returns_none(self, user_store) -> None:
        assert user_store.find_by_username("nobody") is None

    def test_get_by_id(self, user_store) -> None:
        created = user_store.register("alice", "a@x.com", "$2b$04$hash")
        assert user_store.get_by_id(created.id) == created
        assert user_store.get_by_id("0" * 32) is None

    def test_duplicate_username_rejected_and_original_kept(self, user_store) -> None:
        original = user_store.register("alice", "a@x.com", "$2b$04$first")
        with pytest.raises(DuplicateUsername):
            user_store.register("alice", "other@x.com", "$2b$04$second")
        assert user_store.find_by_username("alice") == original

    def test_username_is_case_sensitive(self, user_store) -> None:
        lower = user_store.register("alice", "a@x.com", "$2b$04$hash")
        upper = user_store.register("Alice", "b@x.com", "$2b$04$hash")
        assert lower.id != upper.id
        assert user_store.find_by_username("ALICE") is None

    @pytest.mark.parametrize(
        "username,email,password_hash",
        [("", "a@x.com", "h"), ("   ", "a@x.com", "h"), ("alice", "", "h"), ("alice", "a@x.com", "")],
    )
    def test_empty_fields_rejected(self, user_store, username: str, email: str, password_hash: str) -> None:
        with pytest.raises(ValueError):
            user_store.register(username, email, password_hash)
        assert user_store.find_by_username(username) is None

    def test_repr_hides_password_hash(self, user_store) -> None:
        user = user_store.register("alice", "a@x.com", "$2b$04$secret-hash")
        assert "secret-hash" not in repr(user)

    def test_ping(self, user_store) -> None:
        assert user_store.ping() is True


def _race_register(store, username: str, contenders: int) -> tuple[int, int]:
    """Run `contenders` threads registering the same username at once.

    Returns (successes, duplicates).
    """
    barrier = threading.Barrier(contenders)
    lock = threading.Lock()
    outcomes = {"ok": 0, "dup": 0}

    def attempt(i: int) -> None:
        barrier.wait()
        try:
            store.register(username, f"{i}@x.com", "$2b$04$hash")
            key = "ok"
        except DuplicateUsername:
            key = "dup"
        with lock:
            outcomes[key] += 1

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(contenders)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes["ok"], outcomes["dup"]


class TestConcurrentRegistration:
    def test_memory_store_single_winner(self) -> None:
        store = MemoryUserStore()
        assert _race_register(store, "bob", 16) == (1, 15)

    def test_sql_store_single_winner(self, tmp_path) -> None:
        """File-backed SQLite so each thread gets a real connection."""
        store = SqlUserStore(f"sqlite:///{tmp_path / 'race.db'}")
        try:
            assert _race_register(store, "bob", 8) == (1, 7)
            assert store.find_by_username("bob") is not None
        finally:
            store.close()


class TestSqlFailures:
    def test_missing_table_raises_store_unavailable(self, tmp_path) -> None:
        store = SqlUserStore(f"sqlite:///{tmp_path / 'broken.db'}")
        try:
            with store.engine.begin() as conn:
                conn.execute(text("DROP TABLE users"))
            with pytest.raises(StoreUnavailable):
                store.find_by_username("alice")
            with pytest.raises(StoreUnavailable):
                store.register("alice", "a@x.com", "$2b$04$hash")
            assert store.ping() is True
        finally:
            store.close()

    def test_session_store_failure_raises_store_unavailable(self, tmp_path) -> None:
        store = SqlSessionStore(f"sqlite:///{tmp_path / 'broken.db'}")
        try:
            with store.engine.begin() as conn:
                conn.execute(text("DROP TABLE sessions"))
            with pytest.raises(StoreUnavailable):
                store.get("k" * 64)
        finally:
            store.close()


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


def _record(key: str = "k1", user_id: str = "u1", expires_at: float = 200.0) -> SessionRecord:
    return SessionRecord(session_key=key, user_id=user_id, username="alice", created_at=100.0, expires_at=expires_at)


class TestSessionStore:
    def test_insert_and_get(self, session_store) -> None:
        assert session_store.insert(_record()) is True
        assert session_store.get("k1") == _record()

    def test_duplicate_key_rejected(self, session_store) -> None:
        session_store.insert(_record())
        assert session_store.insert(_record(user_id="u2")) is False
        assert session_store.get("k1").user_id == "u1"

    def test_delete_is_idempotent(self, session_store) -> None:
        session_store.insert(_record())
        assert session_store.delete("k1") is True
        assert session_store.delete("k1") is False
        assert session_store.get("k1") is None

    def test_pop_expired_only_after_expiry(self, session_store) -> None:
        session_store.insert(_record(expires_at=200.0))
        assert session_store.pop_expired("k1", 199.0) is False
        assert session_store.pop_expired("k1", 200.0) is False  # now == expires_at is still valid
        assert session_store.get("k1") is not None
        assert session_store.pop_expired("k1", 200.5) is True
        assert session_store.pop_expired("k1", 200.5) is False
        assert session_store.get("k1") is None

    def test_expired_keys(self, session_store) -> None:
        session_store.insert(_record("old1", expires_at=150.0))
        session_store.insert(_record("old2", expires_at=160.0))
        session_store.insert(_record("live", expires_at=500.0))
        assert sorted(session_store.expired_keys(300.0, 10)) == ["old1", "old2"]
        assert len(session_store.expired_keys(300.0, 1)) == 1

    def test_touch(self, session_store) -> None:
        session_store.insert(_record(expires_at=200.0))
        assert session_store.touch("k1", 900.0) is True
        assert session_store.get("k1").expires_at == 900.0
        assert session_store.touch("missing", 900.0) is False

    def test_get_returns_snapshot(self, session_store) -> None:
        session_store.insert(_record(expires_at=200.0))
        snapshot = session_store.get("k1")
        session_store.touch("k1", 900.0)
        assert snapshot.expires_at == 200.0

    def test_delete_for_user(self, session_store) -> None:
        session_store.insert(_record("a", user_id="u1"))
        session_store.insert(_record("b", user_id="u1"))
        session_store.insert(_record("c", user_id="u2"))
        assert session_store.delete_for_user("u1") == 2
        assert session_store.get("a") is None
        assert session_store.get("c") is not None
        assert session_store.count() == 1
