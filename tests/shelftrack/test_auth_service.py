"""
Tests for user registration and login.
"""

import pytest

from shelftrack.errors import AuthenticationError, ConflictError, ValidationError


class TestRegister:
    """Test cases for AuthService.register."""

    @pytest.mark.asyncio
    async def test_register_returns_user_and_token(self, auth_service, token_issuer, user_repository):
        result = await auth_service.register("Ana Lima", "ana@example.com", "secret123")

        assert result.user.name == "Ana Lima"
        assert result.user.email == "ana@example.com"
        assert token_issuer.verify(result.token) == result.user.id

        stored = await user_repository.get_by_id(result.user.id)
        assert stored.password_hash != "secret123"
        assert stored.password_hash.startswith("pbkdf2_sha256$")

    @pytest.mark.asyncio
    async def test_public_user_has_no_hash(self, auth_service):
        result = await auth_service.register("Ana", "ana@example.com", "secret123")
        data = result.user.model_dump(by_alias=True)
        assert "passwordHash" not in data
        assert "password_hash" not in data

    @pytest.mark.asyncio
    async def test_register_trims_name_and_email(self, auth_service):
        result = await auth_service.register("  Ana ", " ana@example.com ", "secret123")
        assert result.user.name == "Ana"
        assert result.user.email == "ana@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, auth_service):
        await auth_service.register("Ana", "ana@example.com", "secret123")
        with pytest.raises(ConflictError) as exc_info:
            await auth_service.register("Other", "ana@example.com", "another123")
        assert exc_info.value.message == "Email already registered"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name, email, password, message", [
        (None, "a@example.com", "secret123", "Name is required"),
        ("  ", "a@example.com", "secret123", "Name is required"),
        ("Ana", "", "secret123", "Email is required"),
        ("Ana", "a@example.com", None, "Password is required"),
    ])
    async def test_missing_fields(self, auth_service, name, email, password, message):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register(name, email, password)
        assert exc_info.value.message == message

    @pytest.mark.asyncio
    async def test_short_password(self, auth_service):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register("Ana", "ana@example.com", "12345")
        assert "at least 6" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_six_character_password_accepted(self, auth_service):
        result = await auth_service.register("Ana", "ana@example.com", "123456")
        assert result.token


class TestLogin:
    """Test cases for AuthService.login."""

    @pytest.mark.asyncio
    async def test_login_success(self, auth_service, token_issuer):
        registered = await auth_service.register("Ana", "ana@example.com", "secret123")

        result = await auth_service.login("ana@example.com", "secret123")

        assert result.user.id == registered.user.id
        assert token_issuer.verify(result.token) == registered.user.id
        assert result.token != registered.token

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, auth_service):
        await auth_service.register("Ana", "ana@example.com", "secret123")

        with pytest.raises(AuthenticationError) as wrong_password:
            await auth_service.login("ana@example.com", "wrong-password")
        with pytest.raises(AuthenticationError) as unknown_email:
            await auth_service.login("nobody@example.com", "secret123")

        assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email, password", [("", "secret123"), ("ana@example.com", ""), (None, None)])
    async def test_missing_fields(self, auth_service, email, password):
        with pytest.raises(ValidationError):
            await auth_service.login(email, password)
