"""
Pydantic models for users, books and the queries run over them.

Field names are snake_case in Python and camelCase on the wire
(``published_year`` <-> ``publishedYear``); both forms are accepted on input.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DEFAULT_LANGUAGE = "pt-BR"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque record identifier."""
    return str(uuid.uuid4())


class CamelModel(BaseModel):
    """Base model serialising to camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class BookStatus(str, Enum):
    """Reading progress of a book."""
    TO_READ = "to_read"
    READING = "reading"
    READ = "read"


class SortOrder(str, Enum):
    """Sort order options."""
    ASC = "ASC"
    DESC = "DESC"


class User(CamelModel):
    """Stored account, including the password hash."""
    id: str = Field(default_factory=new_id, description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email, unique")
    password_hash: str = Field(..., description="Salted password hash")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def public(self) -> "UserPublic":
        """Return the user without credentials."""
        return UserPublic(
            id=self.id,
            name=self.name,
            email=self.email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class UserPublic(CamelModel):
    """User as exposed by the API."""
    id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class Book(CamelModel):
    """A book record owned by exactly one user."""
    id: str = Field(default_factory=new_id, description="Unique book identifier")
    owner_id: str = Field(..., alias="userId", description="Owning user")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    isbn: Optional[str] = Field(None, description="ISBN, unique when present")
    publisher: Optional[str] = None
    published_year: Optional[int] = None
    pages: Optional[int] = None
    language: str = DEFAULT_LANGUAGE
    cover_url: Optional[str] = None
    description: Optional[str] = None
    status: BookStatus = BookStatus.TO_READ
    rating: Optional[int] = Field(None, description="Rating (1-5)")
    notes: Optional[str] = None
    started_at: Optional[datetime] = Field(None, description="First moved to reading")
    finished_at: Optional[datetime] = Field(None, description="First moved to read")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BookCreate(CamelModel):
    """
    Fields accepted when creating a book.

    Everything is optional at the schema level so that required-field and
    range checks produce the service's own error messages.
    """
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    published_year: Optional[int] = None
    pages: Optional[int] = None
    language: Optional[str] = None
    cover_url: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[int] = None
    notes: Optional[str] = None


class BookPatch(BookCreate):
    """
    Partial update. Only fields present in ``model_fields_set`` are applied;
    an explicit ``null`` clears an optional field.
    """
    status: Optional[str] = None


class BookFilters(CamelModel):
    """Filtering, sorting and pagination for book listings."""
    status: Optional[BookStatus] = Field(None, description="Exact status")
    rating: Optional[int] = Field(None, description="Exact rating")
    author: Optional[str] = Field(None, description="Author substring, case-insensitive")
    title: Optional[str] = Field(None, description="Title substring, case-insensitive")
    published_year: Optional[int] = Field(None, description="Exact publication year")
    search: Optional[str] = Field(None, description="Substring of title or author")
    page: int = Field(1, ge=1, description="Page number (starts from 1)")
    limit: int = Field(10, ge=1, description="Items per page")
    sort_by: Optional[str] = Field(None, description="Book field to sort by")
    sort_order: SortOrder = Field(SortOrder.ASC, description="Sort order")

    @field_validator("status", "author", "title", "search", "sort_by", mode="before")
    @classmethod
    def blank_as_missing(cls, v):
        """Treat empty query values as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v):
        """Accept asc/desc in any case."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return SortOrder.ASC
        if isinstance(v, str):
            return v.strip().upper()
        return v


class BookPage(CamelModel):
    """One page of a filtered book listing."""
    books: List[Book]
    total: int = Field(..., description="Number of matching books")
    page: int
    limit: int
    total_pages: int


class StatusCounts(CamelModel):
    """Number of books per status."""
    to_read: int = 0
    reading: int = 0
    read: int = 0


class LibraryStats(CamelModel):
    """Aggregates over one user's collection."""
    total: int = 0
    by_status: StatusCounts = Field(default_factory=StatusCounts)
    average_rating: float = 0
    total_pages: int = 0
    books_with_rating: int = 0
