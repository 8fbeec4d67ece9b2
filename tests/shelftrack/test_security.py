"""
Unit tests for password hashing and bearer tokens.
"""

import base64
import json
import time

import pytest

from shelftrack.errors import AuthenticationError
from shelftrack.security import TokenIssuer, hash_password, verify_password


class TestPasswordHashing:
    """Test cases for hash_password/verify_password."""

    def test_hash_and_verify(self):
        stored = hash_password("secret123", iterations=1000)
        assert stored.startswith("pbkdf2_sha256$1000$")
        assert "secret123" not in stored
        assert verify_password("secret123", stored)
        assert not verify_password("secret124", stored)

    def test_same_password_different_salts(self):
        assert hash_password("secret123", iterations=1000) != hash_password("secret123", iterations=1000)

    @pytest.mark.parametrize("stored", ["", "plain", "md5$1$salt$hash", "pbkdf2_sha256$x$salt$hash"])
    def test_malformed_hash_never_verifies(self, stored):
        assert verify_password("secret123", stored) is False


class TestTokenIssuer:
    """Test cases for TokenIssuer."""

    def test_round_trip(self, token_issuer):
        token = token_issuer.issue("user-1")
        assert len(token.split(".")) == 3
        assert token_issuer.verify(token) == "user-1"

    def test_payload_claims(self, token_issuer):
        token = token_issuer.issue("user-1", now=1_700_000_000)
        payload_segment = token.split(".")[1]
        payload = json.loads(base64.urlsafe_b64decode(payload_segment + "=" * (-len(payload_segment) % 4)))
        assert payload["sub"] == "user-1"
        assert payload["iat"] == 1_700_000_000
        assert payload["exp"] == 1_700_000_000 + 3600
        assert "jti" in payload

    def test_tokens_differ_even_in_same_second(self, token_issuer):
        now = time.time()
        assert token_issuer.issue("user-1", now=now) != token_issuer.issue("user-1", now=now)

    def test_expired_token(self, token_issuer):
        token = token_issuer.issue("user-1", now=time.time() - 2 * 3600)
        with pytest.raises(AuthenticationError) as exc_info:
            token_issuer.verify(token)
        assert exc_info.value.message == "Token expired"

    def test_wrong_secret(self, token_issuer):
        other = TokenIssuer(secret="another-secret-that-is-also-long-enough")
        with pytest.raises(AuthenticationError):
            token_issuer.verify(other.issue("user-1"))

    def test_tampered_payload(self, token_issuer):
        header, _, signature = token_issuer.issue("user-1").split(".")
        forged = base64.urlsafe_b64encode(
            json.dumps({"sub": "admin", "exp": time.time() + 60}).encode()
        ).decode().rstrip("=")
        with pytest.raises(AuthenticationError):
            token_issuer.verify(f"{header}.{forged}.{signature}")

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "not.a.token", "a.b.\xe9", "\xe9.\xe9.\xe9"])
    def test_malformed_tokens(self, token_issuer, token):
        with pytest.raises(AuthenticationError):
            token_issuer.verify(token)
