"""Unit tests for auth/credentials.py -- CredentialVerifier.

Covers:
- hash() embeds a fresh salt (same input, different output) and never returns plaintext
- verify() accepts the right password and rejects others
- verify() returns False (never raises) on malformed hashes and oversize input
- hash() rejects passwords bcrypt would silently truncate
- the cost factor is honoured and validated
- async variants give the same answers
"""

import asyncio

import pytest

from auth.credentials import MAX_PASSWORD_BYTES, CredentialVerifier


class TestHash:
    def test_hash_is_not_plaintext(self, verifier: CredentialVerifier) -> None:
        hashed = verifier.hash("pw123")
        assert hashed != "pw123"
        assert "pw123" not in hashed

    def test_hash_is_salted_per_call(self, verifier: CredentialVerifier) -> None:
        """Two hashes of the same password must differ -- each embeds its own salt."""
        assert verifier.hash("pw123") != verifier.hash("pw123")

    def test_hash_uses_configured_cost(self) -> None:
        hashed = CredentialVerifier(rounds=5).hash("pw123")
        assert hashed.startswith("$2b$05$")

    def test_oversize_password_rejected(self, verifier: CredentialVerifier) -> None:
        with pytest.raises(ValueError):
            verifier.hash("x" * (MAX_PASSWORD_BYTES + 1))

    def test_multibyte_password_counted_in_bytes(self, verifier: CredentialVerifier) -> None:
        """37 two-byte characters is 74 bytes -- over the limit despite 37 < 72 characters."""
        with pytest.raises(ValueError):
            verifier.hash("é" * 37)

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_invalid_rounds_rejected(self, rounds: int) -> None:
        with pytest.raises(ValueError):
            CredentialVerifier(rounds=rounds)


class TestVerify:
    def test_round_trip(self, verifier: CredentialVerifier) -> None:
        assert verifier.verify("pw123", verifier.hash("pw123")) is True

    def test_wrong_password(self, verifier: CredentialVerifier) -> None:
        assert verifier.verify("wrong", verifier.hash("pw123")) is False

    def test_case_sensitive(self, verifier: CredentialVerifier) -> None:
        assert verifier.verify("PW123", verifier.hash("pw123")) is False

    @pytest.mark.parametrize("bad_hash", ["", "not-a-hash", "$2b$04$short", "pw123"])
    def test_malformed_hash_returns_false(self, verifier: CredentialVerifier, bad_hash: str) -> None:
        assert verifier.verify("pw123", bad_hash) is False

    def test_none_hash_returns_false(self, verifier: CredentialVerifier) -> None:
        assert verifier.verify("pw123", None) is False  # type: ignore[arg-type]

    def test_oversize_password_returns_false(self, verifier: CredentialVerifier) -> None:
        stored = verifier.hash("x" * MAX_PASSWORD_BYTES)
        assert verifier.verify("x" * (MAX_PASSWORD_BYTES + 1), stored) is False

    def test_verify_dummy_is_always_false(self, verifier: CredentialVerifier) -> None:
        assert verifier.verify_dummy("sessionauth-timing-dummy") is False


class TestAsync:
    def test_hash_async_round_trip(self, verifier: CredentialVerifier) -> None:
        async def scenario() -> bool:
            hashed = await verifier.hash_async("pw123")
            return await verifier.verify_async("pw123", hashed)

        assert asyncio.run(scenario()) is True

    def test_verify_async_without_hash_is_false(self, verifier: CredentialVerifier) -> None:
        """A missing hash (unknown user) still runs a comparison and returns False."""
        assert asyncio.run(verifier.verify_async("pw123", None)) is False
