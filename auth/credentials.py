"""
auth/credentials.py -- Password hashing and verification.

Security design decisions:
  bcrypt, used directly (no passlib wrapper). Its cost factor makes brute
  force expensive, and gensalt() embeds a fresh random salt in every hash, so
  hashing the same password twice never yields the same string.

  Input limit: bcrypt only reads the first 72 bytes of its input. Rather than
  let two long passwords with a common prefix collide, hash() rejects longer
  inputs with ValueError and verify() treats them as a mismatch. The API layer
  enforces the same limit in its request model, so users see a 422, not a 500.

  Comparison: bcrypt.checkpw compares digests in constant time. Plaintext is
  never compared with == against anything.

  Timing equalization: verify_dummy() runs a full bcrypt check against a hash
  computed at construction time with the same cost factor. The login flow
  calls it when the username does not exist, so response time does not reveal
  whether an account exists.

  Event loop: hash_async() / verify_async() run the slow work in the Starlette
  thread pool. Coroutines must use these, never the sync variants.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt
from starlette.concurrency import run_in_threadpool

MAX_PASSWORD_BYTES = 72


class CredentialVerifier:
    """One-way password hashing with a tunable bcrypt cost factor.

    Usage:
        verifier = CredentialVerifier(rounds=12)
        stored = verifier.hash("pw123")
        verifier.verify("pw123", stored)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        # Computed once so the first unknown-user login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("sessionauth-timing-dummy")

    def hash(self, plaintext: str) -> str:
        """Return a salted bcrypt hash of plaintext."""
        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Return True if plaintext matches password_hash.

        False on any malformed hash, oversize input or non-string argument --
        the caller only ever needs a yes/no answer.
        """
        try:
            encoded = plaintext.encode("utf-8")
            if len(encoded) > MAX_PASSWORD_BYTES:
                return False
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        """Burn one bcrypt comparison. Always returns False."""
        self.verify(plaintext, self._dummy_hash)
        return False

    async def hash_async(self, plaintext: str) -> str:
        return await run_in_threadpool(self.hash, plaintext)

    async def verify_async(self, plaintext: str, password_hash: str | None) -> bool:
        if password_hash is None:
            return await run_in_threadpool(self.verify_dummy, plaintext)
        return await run_in_threadpool(self.verify, plaintext, password_hash)
