"""
Book query engine.

Turns :class:`BookFilters` into MongoDB filter/sort documents and, for the
in-process store, evaluates the same semantics directly on ``Book`` objects.
All queries are scoped to a single owner.
"""

import math
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shelftrack.errors import ValidationError
from shelftrack.models import Book, BookFilters, SortOrder

# Wire name -> attribute / document key
SORTABLE_FIELDS: Dict[str, str] = {
    "id": "id",
    "userId": "owner_id",
    "title": "title",
    "author": "author",
    "isbn": "isbn",
    "publisher": "publisher",
    "publishedYear": "published_year",
    "pages": "pages",
    "language": "language",
    "coverUrl": "cover_url",
    "description": "description",
    "status": "status",
    "rating": "rating",
    "notes": "notes",
    "startedAt": "started_at",
    "finishedAt": "finished_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

DEFAULT_SORT: Tuple[str, SortOrder] = ("created_at", SortOrder.DESC)


def resolve_sort_field(sort_by: Optional[str]) -> Optional[str]:
    """
    Map a requested sort field to the attribute name.

    Accepts either the camelCase wire name or the snake_case attribute name.

    Raises:
        ValidationError: If the field is not a book field
    """
    if sort_by is None:
        return None
    if sort_by in SORTABLE_FIELDS:
        return SORTABLE_FIELDS[sort_by]
    if sort_by in SORTABLE_FIELDS.values():
        return sort_by
    raise ValidationError(
        f"Invalid sortBy field '{sort_by}'",
        details={"allowed": sorted(SORTABLE_FIELDS)},
    )


def resolve_sort(filters: BookFilters) -> Tuple[str, SortOrder]:
    """Return the effective (field, order) pair for a listing."""
    field = resolve_sort_field(filters.sort_by)
    if field is None:
        return DEFAULT_SORT
    return field, filters.sort_order


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _contains(pattern: str) -> Dict[str, str]:
    return {"$regex": re.escape(pattern), "$options": "i"}


def build_mongo_filter(owner_id: str, filters: BookFilters) -> Dict[str, Any]:
    """
    Build the MongoDB filter document for a listing.

    Args:
        owner_id: Only this user's books are matched
        filters: Requested filters

    Returns:
        Filter document suitable for ``find``/``count_documents``
    """
    query: Dict[str, Any] = {"owner_id": owner_id}

    if filters.status is not None:
        query["status"] = filters.status.value
    if filters.rating is not None:
        query["rating"] = filters.rating
    if filters.published_year is not None:
        query["published_year"] = filters.published_year
    if filters.author:
        query["author"] = _contains(filters.author)
    if filters.title:
        query["title"] = _contains(filters.title)
    if filters.search:
        query["$or"] = [
            {"title": _contains(filters.search)},
            {"author": _contains(filters.search)},
        ]

    return query


def sort_keys(filters: BookFilters) -> List[Tuple[str, SortOrder]]:
    """
    Full ordering for a listing: the requested key, then newest first.

    Ties on the requested key are broken by ``created_at`` and then ``id``
    so that skip/limit paging is stable.
    """
    field, order = resolve_sort(filters)
    keys = [(field, order)]
    for tiebreaker in ("created_at", "id"):
        if tiebreaker != field:
            keys.append((tiebreaker, SortOrder.DESC))
    return keys


def build_mongo_sort(filters: BookFilters) -> List[Tuple[str, int]]:
    return [
        ("_id" if field == "id" else field, 1 if order == SortOrder.ASC else -1)
        for field, order in sort_keys(filters)
    ]


def matches(book: Book, owner_id: str, filters: BookFilters) -> bool:
    """Evaluate the listing filters against a single book."""
    if book.owner_id != owner_id:
        return False
    if filters.status is not None and book.status != filters.status:
        return False
    if filters.rating is not None and book.rating != filters.rating:
        return False
    if filters.published_year is not None and book.published_year != filters.published_year:
        return False
    if filters.author and filters.author.lower() not in book.author.lower():
        return False
    if filters.title and filters.title.lower() not in book.title.lower():
        return False
    if filters.search:
        needle = filters.search.lower()
        if needle not in book.title.lower() and needle not in book.author.lower():
            return False
    return True


def _sort_value(book: Book, field: str) -> Tuple[int, Any]:
    value = getattr(book, field)
    if value is None:
        # Missing values order before present ones, as in MongoDB
        return (0, 0)
    if hasattr(value, "value"):
        value = value.value
    return (1, value)


def sort_books(books: Iterable[Book], filters: BookFilters) -> List[Book]:
    ordered = list(books)
    # Stable sorts applied from the least significant key up
    for field, order in reversed(sort_keys(filters)):
        ordered.sort(
            key=lambda book: _sort_value(book, field),
            reverse=order == SortOrder.DESC,
        )
    return ordered


def paginate(items: List[Book], page: int, limit: int) -> List[Book]:
    start = (page - 1) * limit
    return items[start:start + limit]
