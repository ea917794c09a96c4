"""
auth/memory.py -- In-process store backends.

Same contracts as auth/store.py, held in dicts behind a threading.Lock. Every
public method takes the lock exactly once. The sweep path (expired_keys, then
pop_expired per key) filters a snapshot outside the lock and removes one
record per acquisition, so no caller waits behind a sweep for longer than a
single removal.

Suitable for tests and single-process deployments. Contents do not survive a
restart.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

from auth.errors import DuplicateUsername
from auth.models import SessionRecord, User
from auth.store import require_fields


class MemoryUserStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_username: dict[str, User] = {}
        self._by_id: dict[str, User] = {}

    def register(self, username: str, email: str, password_hash: str) -> User:
        require_fields(username=username, email=email, password_hash=password_hash)
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            if username in self._by_username:
                raise DuplicateUsername()
            self._by_username[username] = user
            self._by_id[user.id] = user
        return user

    def find_by_username(self, username: str) -> User | None:
        with self._lock:
            return self._by_username.get(username)

    def get_by_id(self, user_id: str) -> User | None:
        with self._lock:
            return self._by_id.get(user_id)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class MemorySessionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, SessionRecord] = {}

    def insert(self, record: SessionRecord) -> bool:
        with self._lock:
            if record.session_key in self._records:
                return False
            self._records[record.session_key] = record
        return True

    def get(self, session_key: str) -> SessionRecord | None:
        with self._lock:
            record = self._records.get(session_key)
        # Hand out a copy; touch() mutates the stored instance.
        return SessionRecord(**vars(record)) if record is not None else None

    def delete(self, session_key: str) -> bool:
        with self._lock:
            return self._records.pop(session_key, None) is not None

    def pop_expired(self, session_key: str, now: float) -> bool:
        with self._lock:
            record = self._records.get(session_key)
            if record is None or not record.is_expired(now):
                return False
            del self._records[session_key]
        return True

    def expired_keys(self, now: float, limit: int) -> list[str]:
        with self._lock:
            snapshot = list(self._records.items())
        return [k for k, r in snapshot if r.is_expired(now)][:limit]

    def touch(self, session_key: str, expires_at: float) -> bool:
        with self._lock:
            record = self._records.get(session_key)
            if record is None:
                return False
            record.expires_at = expires_at
        return True

    def delete_for_user(self, user_id: str) -> int:
        with self._lock:
            doomed = [k for k, r in self._records.items() if r.user_id == user_id]
            for key in doomed:
                del self._records[key]
        return len(doomed)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def close(self) -> None:
        with self._lock:
            self._records.clear()
