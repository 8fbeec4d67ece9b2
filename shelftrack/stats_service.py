"""
Collection statistics, computed on demand from a user's books.
"""

import structlog

from shelftrack.models import BookStatus, LibraryStats, StatusCounts
from shelftrack.repositories import BookRepository

logger = structlog.get_logger(__name__)


class StatsService:
    """Aggregates counts, ratings and pages over one owner's collection."""

    def __init__(self, books: BookRepository):
        self.books = books

    async def get_stats(self, owner_id: str) -> LibraryStats:
        """
        Compute statistics for ``owner_id``.

        The average rating only considers rated books and is rounded to two
        decimals (0 when nothing is rated). Books without a page count add 0
        to the page total.
        """
        books = await self.books.list_owned(owner_id)

        by_status = StatusCounts(
            to_read=sum(1 for book in books if book.status is BookStatus.TO_READ),
            reading=sum(1 for book in books if book.status is BookStatus.READING),
            read=sum(1 for book in books if book.status is BookStatus.READ),
        )

        ratings = [book.rating for book in books if book.rating is not None]
        average_rating = round(sum(ratings) / len(ratings), 2) if ratings else 0
        total_pages = sum(book.pages for book in books if book.pages is not None)

        logger.debug("Stats computed", owner_id=owner_id, total=len(books))
        return LibraryStats(
            total=len(books),
            by_status=by_status,
            average_rating=average_rating,
            total_pages=total_pages,
            books_with_rating=len(ratings),
        )
