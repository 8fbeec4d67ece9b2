"""
API request and response schemas.

Book bodies reuse the domain models from :mod:`shelftrack.models`; this
module adds the envelopes the endpoints wrap them in.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from shelftrack.models import Book, CamelModel, LibraryStats, UserPublic


class RegisterRequest(BaseModel):
    """Registration payload."""
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Login email")
    password: Optional[str] = Field(None, description="Password, at least 6 characters")


class LoginRequest(BaseModel):
    """Login payload."""
    email: Optional[str] = None
    password: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    """Reading status change payload."""
    status: Optional[str] = Field(None, description="to_read, reading or read")


class AuthResponse(BaseModel):
    """Response for register and login."""
    message: str
    user: UserPublic
    token: str = Field(..., description="Bearer token")


class BookResponse(BaseModel):
    """Single book."""
    book: Book


class BookMessageResponse(BookResponse):
    """Single book after a change, with a confirmation message."""
    message: str


class MessageResponse(BaseModel):
    message: str


class Pagination(CamelModel):
    """Pagination block of a listing."""
    total: int = Field(..., description="Total number of matching books")
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of books per page")
    total_pages: int = Field(..., description="Total number of pages")


class BookListResponse(BaseModel):
    """Response model for book list with pagination."""
    books: List[Book] = Field(..., description="List of books")
    pagination: Pagination


class StatsResponse(BaseModel):
    stats: LibraryStats


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    details: Optional[Any] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    uptime: float = Field(..., description="Seconds since startup")
    version: str = Field(..., description="API version")
    database: str = Field(..., description="Storage status")
