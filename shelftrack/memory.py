"""
In-process repositories backed by dictionaries.

Used for local runs without MongoDB and by the test suite. Semantics match
the MongoDB repositories, including the storage-level uniqueness backstops.
"""

from typing import Dict, List, Optional, Tuple

from shelftrack.errors import ConflictError
from shelftrack.models import Book, BookFilters, User
from shelftrack.query import matches, paginate, sort_books
from shelftrack.repositories import BookRepository, UserRepository


class InMemoryUserRepository(UserRepository):
    """Users keyed by id."""

    def __init__(self):
        self._users: Dict[str, User] = {}

    async def insert(self, user: User) -> User:
        if any(existing.email == user.email for existing in self._users.values()):
            raise ConflictError("Email already registered")
        self._users[user.id] = user.model_copy(deep=True)
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None


class InMemoryBookRepository(BookRepository):
    """
    Books keyed by id, in insertion order.

    ``isbn_scope`` mirrors the unique index the MongoDB store builds:
    ``global`` for one ISBN per collection, ``owner`` for one per user.
    """

    def __init__(self, isbn_scope: str = "global"):
        self._books: Dict[str, Book] = {}
        self.isbn_scope = isbn_scope

    def _check_isbn(self, book: Book) -> None:
        if not book.isbn:
            return
        for other in self._books.values():
            if other.id == book.id or other.isbn != book.isbn:
                continue
            if self.isbn_scope == "owner" and other.owner_id != book.owner_id:
                continue
            raise ConflictError("ISBN already registered")

    async def insert(self, book: Book) -> Book:
        self._check_isbn(book)
        self._books[book.id] = book.model_copy(deep=True)
        return book

    async def save(self, book: Book) -> Book:
        self._check_isbn(book)
        self._books[book.id] = book.model_copy(deep=True)
        return book

    async def get_owned(self, owner_id: str, book_id: str) -> Optional[Book]:
        book = self._books.get(book_id)
        if book is None or book.owner_id != owner_id:
            return None
        return book.model_copy(deep=True)

    async def find_by_isbn(self, isbn: str, owner_id: Optional[str] = None) -> Optional[Book]:
        for book in self._books.values():
            if book.isbn != isbn:
                continue
            if owner_id is not None and book.owner_id != owner_id:
                continue
            return book.model_copy(deep=True)
        return None

    async def delete_owned(self, owner_id: str, book_id: str) -> bool:
        book = self._books.get(book_id)
        if book is None or book.owner_id != owner_id:
            return False
        del self._books[book_id]
        return True

    async def search(self, owner_id: str, filters: BookFilters) -> Tuple[List[Book], int]:
        candidates = [
            book for book in self._books.values()
            if matches(book, owner_id, filters)
        ]
        ordered = sort_books(candidates, filters)
        page = paginate(ordered, filters.page, filters.limit)
        return [book.model_copy(deep=True) for book in page], len(candidates)

    async def list_owned(self, owner_id: str) -> List[Book]:
        return [
            book.model_copy(deep=True)
            for book in self._books.values()
            if book.owner_id == owner_id
        ]
