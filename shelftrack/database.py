"""
MongoDB storage for users and books using motor.

Handles connection, indexing and the repository operations the services
rely on. Documents use snake_case keys and the record id as ``_id``;
optional fields without a value are not stored.
"""

from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from shelftrack.errors import ConflictError, InternalError
from shelftrack.models import Book, BookFilters, User
from shelftrack.query import build_mongo_filter, build_mongo_sort
from shelftrack.repositories import BookRepository, UserRepository

logger = structlog.get_logger(__name__)


def user_to_document(user: User) -> Dict[str, Any]:
    document = user.model_dump(by_alias=False)
    document["_id"] = document.pop("id")
    return document


def document_to_user(document: Dict[str, Any]) -> User:
    document = dict(document)
    document["id"] = document.pop("_id")
    return User.model_validate(document)


def book_to_document(book: Book) -> Dict[str, Any]:
    document = book.model_dump(by_alias=False, exclude_none=True)
    document["_id"] = document.pop("id")
    document["status"] = book.status.value
    return document


def document_to_book(document: Dict[str, Any]) -> Book:
    document = dict(document)
    document["id"] = document.pop("_id")
    return Book.model_validate(document)


class MongoUserRepository(UserRepository):
    """Users stored in the ``users`` collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def insert(self, user: User) -> User:
        try:
            await self.collection.insert_one(user_to_document(user))
        except DuplicateKeyError:
            raise ConflictError("Email already registered")
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        document = await self.collection.find_one({"_id": user_id})
        return document_to_user(document) if document else None

    async def get_by_email(self, email: str) -> Optional[User]:
        document = await self.collection.find_one({"email": email})
        return document_to_user(document) if document else None


class MongoBookRepository(BookRepository):
    """Books stored in the ``books`` collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def insert(self, book: Book) -> Book:
        try:
            await self.collection.insert_one(book_to_document(book))
        except DuplicateKeyError:
            raise ConflictError("ISBN already registered")
        return book

    async def save(self, book: Book) -> Book:
        try:
            await self.collection.replace_one({"_id": book.id}, book_to_document(book))
        except DuplicateKeyError:
            raise ConflictError("ISBN already registered")
        return book

    async def get_owned(self, owner_id: str, book_id: str) -> Optional[Book]:
        document = await self.collection.find_one({"_id": book_id, "owner_id": owner_id})
        return document_to_book(document) if document else None

    async def find_by_isbn(self, isbn: str, owner_id: Optional[str] = None) -> Optional[Book]:
        query: Dict[str, Any] = {"isbn": isbn}
        if owner_id is not None:
            query["owner_id"] = owner_id
        document = await self.collection.find_one(query)
        return document_to_book(document) if document else None

    async def delete_owned(self, owner_id: str, book_id: str) -> bool:
        result = await self.collection.delete_one({"_id": book_id, "owner_id": owner_id})
        return result.deleted_count > 0

    async def search(self, owner_id: str, filters: BookFilters) -> Tuple[List[Book], int]:
        filter_query = build_mongo_filter(owner_id, filters)
        sort_query = build_mongo_sort(filters)
        skip = (filters.page - 1) * filters.limit

        total = await self.collection.count_documents(filter_query)
        cursor = (
            self.collection.find(filter_query)
            .sort(sort_query)
            .skip(skip)
            .limit(filters.limit)
        )
        documents = await cursor.to_list(length=filters.limit)
        return [document_to_book(document) for document in documents], total

    async def list_owned(self, owner_id: str) -> List[Book]:
        cursor = self.collection.find({"owner_id": owner_id})
        documents = await cursor.to_list(length=None)
        return [document_to_book(document) for document in documents]


class MongoDBManager:
    """
    Async MongoDB manager.
    Owns the client, creates indexes and hands out repositories.
    """

    def __init__(self, connection_url: str, database_name: str, isbn_scope: str = "global"):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            isbn_scope: ``global`` or ``owner`` uniqueness for the ISBN index
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.isbn_scope = isbn_scope
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and make sure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]

            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create indexes for ownership-scoped queries and uniqueness.
        The unique indexes back up the service-level duplicate checks.
        """
        users = self.database.users
        books = self.database.books
        has_isbn = {"isbn": {"$exists": True}}

        await users.create_index("email", unique=True)

        if self.isbn_scope == "owner":
            await books.create_index(
                [("owner_id", 1), ("isbn", 1)],
                unique=True,
                partialFilterExpression=has_isbn,
                name="owner_isbn_unique",
            )
        else:
            await books.create_index(
                "isbn", unique=True, partialFilterExpression=has_isbn, name="isbn_unique"
            )

        await books.create_index("owner_id")
        await books.create_index([("owner_id", 1), ("created_at", -1)])
        await books.create_index([("owner_id", 1), ("status", 1)])

        logger.info("Successfully created MongoDB indexes", isbn_scope=self.isbn_scope)

    def _require_database(self) -> AsyncIOMotorDatabase:
        if self.database is None:
            raise InternalError("Database not connected")
        return self.database

    def user_repository(self) -> MongoUserRepository:
        return MongoUserRepository(self._require_database().users)

    def book_repository(self) -> MongoBookRepository:
        return MongoBookRepository(self._require_database().books)

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {"status": "healthy"}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
