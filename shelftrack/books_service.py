"""
Book validation, lifecycle and listing.

All operations are scoped to the calling owner: a book that exists but
belongs to someone else is reported exactly like a missing one.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

import structlog

from shelftrack.errors import ConflictError, NotFoundError, ValidationError
from shelftrack.models import (
    DEFAULT_LANGUAGE, Book, BookCreate, BookFilters, BookPage, BookPatch,
    BookStatus, utc_now
)
from shelftrack.query import resolve_sort_field, total_pages
from shelftrack.repositories import BookRepository

logger = structlog.get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5
STATUS_CHOICES = ", ".join(status.value for status in BookStatus)

# Optional text fields that are trimmed and dropped when blank
OPTIONAL_TEXT_FIELDS = ("publisher", "cover_url", "description", "notes")


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim a string; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_status(value: Optional[str]) -> BookStatus:
    """
    Parse a status value.

    Raises:
        ValidationError: If the value is blank or not a known status
    """
    if value is None or not str(value).strip():
        raise ValidationError("Status is required")
    try:
        return BookStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status. Use one of: {STATUS_CHOICES}")


def status_changes(book: Book, status: BookStatus, now: datetime) -> Dict[str, Any]:
    """
    Field changes for moving ``book`` to ``status``.

    ``started_at``/``finished_at`` are stamped the first time the book
    reaches reading/read and are never overwritten or cleared afterwards.
    """
    changes: Dict[str, Any] = {"status": status}
    if status is BookStatus.READING:
        if book.started_at is None:
            changes["started_at"] = now
    elif status is BookStatus.READ:
        if book.finished_at is None:
            changes["finished_at"] = now
    elif status is not BookStatus.TO_READ:
        raise ValidationError(f"Invalid status. Use one of: {STATUS_CHOICES}")
    return changes


def _require_text(value: Optional[str], label: str) -> str:
    cleaned = clean_text(value)
    if cleaned is None:
        raise ValidationError(f"{label} is required")
    return cleaned


def _check_published_year(year: Optional[int], now: datetime) -> None:
    if year is not None and year > now.year:
        raise ValidationError("Published year cannot be in the future")


def _check_rating(rating: Optional[int]) -> None:
    if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


def _check_pages(pages: Optional[int]) -> None:
    if pages is not None and pages < 0:
        raise ValidationError("Pages cannot be negative")


class BooksService:
    """CRUD, status tracking and listing over one owner's books."""

    def __init__(
        self,
        books: BookRepository,
        isbn_scope: str = "global",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.books = books
        self.isbn_scope = isbn_scope
        self.clock = clock

    async def _ensure_isbn_available(self, isbn: str, owner_id: str, exclude_id: Optional[str] = None) -> None:
        scope_owner = owner_id if self.isbn_scope == "owner" else None
        existing = await self.books.find_by_isbn(isbn, owner_id=scope_owner)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError("ISBN already registered")

    async def create(self, owner_id: str, data: BookCreate) -> Book:
        """
        Create a book for ``owner_id``.

        Raises:
            ValidationError: Missing title/author, future year, rating outside 1-5,
                negative page count
            ConflictError: If the ISBN is already taken
        """
        now = self.clock()
        title = _require_text(data.title, "Title")
        author = _require_text(data.author, "Author")

        isbn = clean_text(data.isbn)
        if isbn is not None:
            await self._ensure_isbn_available(isbn, owner_id)

        _check_published_year(data.published_year, now)
        _check_rating(data.rating)
        _check_pages(data.pages)

        book = Book(
            owner_id=owner_id,
            title=title,
            author=author,
            isbn=isbn,
            published_year=data.published_year,
            pages=data.pages,
            rating=data.rating,
            language=clean_text(data.language) or DEFAULT_LANGUAGE,
            status=BookStatus.TO_READ,
            created_at=now,
            updated_at=now,
            **{field: clean_text(getattr(data, field)) for field in OPTIONAL_TEXT_FIELDS},
        )
        await self.books.insert(book)
        logger.info("Book created", book_id=book.id, owner_id=owner_id)
        return book

    async def get(self, owner_id: str, book_id: str) -> Book:
        """
        Fetch one of the owner's books.

        Raises:
            NotFoundError: If the book does not exist or belongs to someone else
        """
        book = await self.books.get_owned(owner_id, book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    async def update(self, owner_id: str, book_id: str, patch: BookPatch) -> Book:
        """
        Apply a partial update. Fields absent from the request are untouched;
        every present field is validated with the create rules.
        """
        book = await self.get(owner_id, book_id)
        now = self.clock()
        present = patch.model_fields_set
        changes: Dict[str, Any] = {}

        if "title" in present:
            changes["title"] = _require_text(patch.title, "Title")
        if "author" in present:
            changes["author"] = _require_text(patch.author, "Author")

        if "isbn" in present:
            isbn = clean_text(patch.isbn)
            if isbn is not None and isbn != book.isbn:
                await self._ensure_isbn_available(isbn, owner_id, exclude_id=book.id)
            changes["isbn"] = isbn

        if "published_year" in present:
            _check_published_year(patch.published_year, now)
            changes["published_year"] = patch.published_year
        if "rating" in present:
            _check_rating(patch.rating)
            changes["rating"] = patch.rating
        if "pages" in present:
            _check_pages(patch.pages)
            changes["pages"] = patch.pages

        if "language" in present:
            changes["language"] = clean_text(patch.language) or DEFAULT_LANGUAGE
        for field in OPTIONAL_TEXT_FIELDS:
            if field in present:
                changes[field] = clean_text(getattr(patch, field))

        if "status" in present:
            changes.update(status_changes(book, parse_status(patch.status), now))

        changes["updated_at"] = now
        updated = book.model_copy(update=changes)
        await self.books.save(updated)
        logger.info("Book updated", book_id=book.id, fields=sorted(present))
        return updated

    async def update_status(self, owner_id: str, book_id: str, status: Optional[str]) -> Book:
        """
        Move a book to a new reading status, stamping start/finish times.

        Raises:
            NotFoundError: If the book is not the owner's
            ValidationError: If the status is blank or unknown
        """
        book = await self.get(owner_id, book_id)
        new_status = parse_status(status)
        now = self.clock()

        changes = status_changes(book, new_status, now)
        changes["updated_at"] = now
        updated = book.model_copy(update=changes)
        await self.books.save(updated)
        logger.info(
            "Book status changed",
            book_id=book.id,
            old_status=book.status.value,
            new_status=new_status.value,
        )
        return updated

    async def delete(self, owner_id: str, book_id: str) -> None:
        """
        Permanently remove a book, freeing its ISBN.

        Raises:
            NotFoundError: If the book is not the owner's
        """
        if not await self.books.delete_owned(owner_id, book_id):
            raise NotFoundError("Book not found")
        logger.info("Book deleted", book_id=book_id, owner_id=owner_id)

    async def list(self, owner_id: str, filters: BookFilters) -> BookPage:
        """
        Filter, sort and paginate the owner's books.

        Raises:
            ValidationError: If ``sort_by`` is not a book field
        """
        # Reject unknown sort fields before touching storage
        resolve_sort_field(filters.sort_by)
        books, total = await self.books.search(owner_id, filters)
        return BookPage(
            books=books,
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=total_pages(total, filters.limit),
        )
