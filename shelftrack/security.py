"""
Password hashing and bearer token handling.

Tokens are HS256-signed, JWT-shaped strings (header.payload.signature,
base64url without padding) bound to a user id.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Any, Dict, Mapping, Optional

from shelftrack.errors import AuthenticationError

PBKDF2_ALGORITHM = "pbkdf2_sha256"
PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hash a password with a fresh random salt."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return f"{PBKDF2_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a password against a hash produced by :func:`hash_password`."""
    try:
        algorithm, iterations, salt, expected = stored_hash.split("$")
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != PBKDF2_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), rounds
    )
    return hmac.compare_digest(digest.hex(), expected)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _json_dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


class TokenIssuer:
    """Issues and verifies signed bearer tokens."""

    def __init__(self, secret: str, expire_minutes: int = 7 * 24 * 60):
        self.secret = secret.encode("utf-8")
        self.expire_seconds = expire_minutes * 60

    def _sign(self, message: str) -> str:
        digest = hmac.new(self.secret, message.encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(digest)

    def issue(self, user_id: str, now: Optional[float] = None) -> str:
        """
        Issue a token for a user.

        Args:
            user_id: Identity the token is bound to
            now: Issue time as a UNIX timestamp (defaults to the current time)

        Returns:
            Signed token string
        """
        issued_at = int(now if now is not None else time.time())
        payload: Dict[str, Any] = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + self.expire_seconds,
            "jti": secrets.token_hex(8),
        }
        header = {"alg": "HS256", "typ": "JWT"}
        header_segment = _b64encode(_json_dumps(header).encode("utf-8"))
        payload_segment = _b64encode(_json_dumps(payload).encode("utf-8"))
        signature = self._sign(f"{header_segment}.{payload_segment}")
        return f"{header_segment}.{payload_segment}.{signature}"

    def verify(self, token: str) -> str:
        """
        Verify a token and return the user id it is bound to.

        Raises:
            AuthenticationError: If the token is malformed, tampered with or expired
        """
        try:
            header_segment, payload_segment, signature = token.split(".")
        except ValueError:
            raise AuthenticationError("Invalid token")

        expected = self._sign(f"{header_segment}.{payload_segment}")
        # Header values may carry arbitrary characters; compare as bytes
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("ascii")):
            raise AuthenticationError("Invalid token")

        try:
            payload = json.loads(_b64decode(payload_segment).decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            raise AuthenticationError("Invalid token")
        if not isinstance(payload, dict):
            raise AuthenticationError("Invalid token")

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp < time.time():
            raise AuthenticationError("Token expired")

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise AuthenticationError("Invalid token")
        return user_id
