"""
User registration and login.
"""

from typing import Optional

import structlog
from pydantic import BaseModel

from shelftrack.errors import AuthenticationError, ConflictError, ValidationError
from shelftrack.models import User, UserPublic, utc_now
from shelftrack.repositories import UserRepository
from shelftrack.security import TokenIssuer, hash_password, verify_password

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Invalid credentials"


class AuthResult(BaseModel):
    """Authenticated user plus the bearer token issued for them."""
    user: UserPublic
    token: str


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AuthService:
    """Registers and authenticates users and issues their tokens."""

    def __init__(self, users: UserRepository, tokens: TokenIssuer):
        self.users = users
        self.tokens = tokens

    async def register(self, name: Optional[str], email: Optional[str], password: Optional[str]) -> AuthResult:
        """
        Create an account and log it in.

        Raises:
            ValidationError: If a field is blank or the password is too short
            ConflictError: If the email is already registered
        """
        if _is_blank(name):
            raise ValidationError("Name is required")
        if _is_blank(email):
            raise ValidationError("Email is required")
        if _is_blank(password):
            raise ValidationError("Password is required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        email = email.strip()
        if await self.users.get_by_email(email) is not None:
            raise ConflictError("Email already registered")

        now = utc_now()
        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        await self.users.insert(user)
        logger.info("User registered", user_id=user.id)

        return AuthResult(user=user.public(), token=self.tokens.issue(user.id))

    async def login(self, email: Optional[str], password: Optional[str]) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email and wrong password fail with the same error.

        Raises:
            ValidationError: If email or password is blank
            AuthenticationError: If the credentials do not match
        """
        if _is_blank(email):
            raise ValidationError("Email is required")
        if _is_blank(password):
            raise ValidationError("Password is required")

        user = await self.users.get_by_email(email.strip())
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Login rejected")
            raise AuthenticationError(INVALID_CREDENTIALS)

        logger.info("User logged in", user_id=user.id)
        return AuthResult(user=user.public(), token=self.tokens.issue(user.id))
