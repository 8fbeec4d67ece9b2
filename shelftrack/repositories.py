"""
Storage-access interfaces injected into the services.

Implementations live in :mod:`shelftrack.database` (MongoDB) and
:mod:`shelftrack.memory` (in-process).
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from shelftrack.models import Book, BookFilters, User


class UserRepository(ABC):
    """Account directory."""

    @abstractmethod
    async def insert(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            ConflictError: If the email is already registered
        """

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Exact, case-sensitive email lookup."""


class BookRepository(ABC):
    """Book collection partitioned by owner."""

    @abstractmethod
    async def insert(self, book: Book) -> Book:
        """
        Persist a new book.

        Raises:
            ConflictError: If the store rejects a duplicate ISBN
        """

    @abstractmethod
    async def save(self, book: Book) -> Book:
        """Replace a stored book with the given state."""

    @abstractmethod
    async def get_owned(self, owner_id: str, book_id: str) -> Optional[Book]:
        """Return the book only if it exists and belongs to ``owner_id``."""

    @abstractmethod
    async def find_by_isbn(self, isbn: str, owner_id: Optional[str] = None) -> Optional[Book]:
        """Find a book by ISBN, across all owners unless ``owner_id`` is given."""

    @abstractmethod
    async def delete_owned(self, owner_id: str, book_id: str) -> bool:
        """Delete an owned book. Returns False if nothing was deleted."""

    @abstractmethod
    async def search(self, owner_id: str, filters: BookFilters) -> Tuple[List[Book], int]:
        """Return one page of matching books and the total match count."""

    @abstractmethod
    async def list_owned(self, owner_id: str) -> List[Book]:
        """Return every book owned by ``owner_id``."""
