"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
SqlUserStore and SqlSessionStore are the repositories; _row_to_user and
_row_to_session are the mappers. Service and route code never touches SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.

Atomicity:
  Username uniqueness is enforced by the UNIQUE index, so the check and the
  insert are a single statement in a single transaction -- two concurrent
  registrations cannot both succeed. Lazy session expiry is a conditional
  DELETE (key AND expires_at < now); its rowcount tells the caller whether
  this call performed the eviction, so exactly one concurrent resolve observes
  "expired" and every later one observes "not found".

Errors:
  SQLAlchemyError is translated to StoreUnavailable at this boundary. The
  store never retries; retry policy belongs to the deployment's database.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Float, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateUsername, StoreUnavailable
from auth.models import SessionRecord, User

logger = logging.getLogger("sessionauth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),  # BINARY collation: case-sensitive
    Column("email", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("session_key", String(64), primary_key=True),  # HMAC-SHA256 hex of the raw id
    Column("user_id", String(32), nullable=False, index=True),
    Column("username", String(255), nullable=False),
    Column("created_at", Float, nullable=False),
    Column("expires_at", Float, nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        # Class name only -- driver messages can echo bound parameters.
        logger.error("Store failure during %s: %s", operation, exc.__class__.__name__)
        raise StoreUnavailable() from exc


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class SqlUserStore:
    """Credential store backed by a SQLAlchemy engine.

    Usage:
        store = SqlUserStore("sqlite:///auth.db")
        user = store.register("alice", "a@x.com", verifier.hash("pw123"))
        store.find_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        with _store_errors("connect"):
            self.engine: Engine = _make_engine(db_url)

    def register(self, username: str, email: str, password_hash: str) -> User:
        """Insert a new user and return it.

        Raises DuplicateUsername if the username is taken (the UNIQUE index
        rejects the INSERT; nothing is written). Raises ValueError for empty
        username, email or hash.
        """
        require_fields(username=username, email=email, password_hash=password_hash)
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=_now_iso(),
        )
        with _store_errors("register"):
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        _users.insert().values(
                            id=user.id,
                            username=user.username,
                            email=user.email,
                            password_hash=user.password_hash,
                            created_at=user.created_at,
                        )
                    )
            except IntegrityError as exc:
                raise DuplicateUsername() from exc
        return user

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with _store_errors("find_by_username"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with _store_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Cheap connectivity probe used by GET /health. Never raises."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("User store ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SqlSessionStore:
    """Session store backed by a SQLAlchemy engine.

    Holds only session_key digests -- see SessionRecord. Every method is a
    single statement, so each is atomic on its own row.
    """

    def __init__(self, db_url: str) -> None:
        with _store_errors("connect"):
            self.engine: Engine = _make_engine(db_url)

    def insert(self, record: SessionRecord) -> bool:
        with _store_errors("session insert"):
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        _sessions.insert().values(
                            session_key=record.session_key,
                            user_id=record.user_id,
                            username=record.username,
                            created_at=record.created_at,
                            expires_at=record.expires_at,
                        )
                    )
            except IntegrityError:
                return False
        return True

    def get(self, session_key: str) -> SessionRecord | None:
        with _store_errors("session get"), self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.session_key == session_key)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete(self, session_key: str) -> bool:
        with _store_errors("session delete"), self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.session_key == session_key))
        return result.rowcount > 0

    def pop_expired(self, session_key: str, now: float) -> bool:
        with _store_errors("session expire"), self.engine.begin() as conn:
            result = conn.execute(
                _sessions.delete().where((_sessions.c.session_key == session_key) & (_sessions.c.expires_at < now))
            )
        return result.rowcount > 0

    def expired_keys(self, now: float, limit: int) -> list[str]:
        with _store_errors("session scan"), self.engine.connect() as conn:
            rows = conn.execute(
                select(_sessions.c.session_key).where(_sessions.c.expires_at < now).limit(limit)
            ).fetchall()
        return [r.session_key for r in rows]

    def touch(self, session_key: str, expires_at: float) -> bool:
        with _store_errors("session touch"), self.engine.begin() as conn:
            result = conn.execute(
                _sessions.update().where(_sessions.c.session_key == session_key).values(expires_at=expires_at)
            )
        return result.rowcount > 0

    def delete_for_user(self, user_id: str) -> int:
        with _store_errors("session revoke"), self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        return result.rowcount

    def count(self) -> int:
        with _store_errors("session count"), self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_sessions)).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Validation + row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def require_fields(**fields: str) -> None:
    empty = sorted(name for name, value in fields.items() if not value or not value.strip())
    if empty:
        raise ValueError(f"Required fields are empty: {', '.join(empty)}")


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )


def _row_to_session(row) -> SessionRecord:
    return SessionRecord(
        session_key=row.session_key,
        user_id=row.user_id,
        username=row.username,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )
