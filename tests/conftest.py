"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import create_app
from shelftrack.auth_service import AuthService
from shelftrack.books_service import BooksService
from shelftrack.memory import InMemoryBookRepository, InMemoryUserRepository
from shelftrack.models import BookCreate
from shelftrack.security import TokenIssuer
from shelftrack.stats_service import StatsService

TEST_SECRET = "test-secret-key-with-at-least-32-characters"


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def book_repository():
    return InMemoryBookRepository()


@pytest.fixture
def user_repository():
    return InMemoryUserRepository()


@pytest.fixture
def token_issuer():
    return TokenIssuer(secret=TEST_SECRET, expire_minutes=60)


@pytest.fixture
def books_service(book_repository, clock):
    return BooksService(book_repository, clock=clock)


@pytest.fixture
def auth_service(user_repository, token_issuer):
    return AuthService(user_repository, token_issuer)


@pytest.fixture
def stats_service(book_repository):
    return StatsService(book_repository)


@pytest.fixture
def sample_book_data():
    """Create sample book data for testing."""
    return BookCreate(
        title="Clean Code",
        author="Robert C. Martin",
        isbn="9780132350884",
        publisher="Prentice Hall",
        published_year=2008,
        pages=464,
    )


@pytest.fixture
def api_config():
    """Configuration for an app backed by the in-memory store."""
    return APIConfig(
        storage_backend="memory",
        secret_key=TEST_SECRET,
        log_level="WARNING",
        log_format="console",
    )


@pytest.fixture
def client(api_config):
    """Create test client with the application lifespan running."""
    with TestClient(create_app(api_config)) as test_client:
        yield test_client


@pytest.fixture
def register_user(client):
    """Register a user and return the Authorization headers for them."""
    counter = {"value": 0}

    def _register(email: str = None, password: str = "secret123", name: str = "Test User"):
        counter["value"] += 1
        email = email or f"reader{counter['value']}@example.com"
        response = client.post(
            "/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register


@pytest.fixture
def auth_headers(register_user):
    return register_user()
