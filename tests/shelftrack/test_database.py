"""
Tests for the MongoDB repositories and manager, with motor mocked out.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, Mock, call

import pytest
from pymongo.errors import DuplicateKeyError

from shelftrack.database import (
    MongoBookRepository, MongoDBManager, MongoUserRepository, book_to_document,
    document_to_book, document_to_user, user_to_document
)
from shelftrack.errors import ConflictError, InternalError
from shelftrack.models import Book, BookFilters, BookStatus, User

CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def collection():
    """Mock motor collection; find() is synchronous and returns a cursor."""
    mock = MagicMock()
    mock.insert_one = AsyncMock()
    mock.replace_one = AsyncMock()
    mock.find_one = AsyncMock(return_value=None)
    mock.delete_one = AsyncMock()
    mock.count_documents = AsyncMock(return_value=0)

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    mock.find.return_value = cursor
    return mock


@pytest.fixture
def sample_book():
    return Book(
        id="book-1",
        owner_id="owner-a",
        title="Clean Code",
        author="Robert C. Martin",
        isbn="9780132350884",
        status=BookStatus.READING,
        started_at=CREATED,
        created_at=CREATED,
        updated_at=CREATED,
    )


class TestDocumentMapping:
    """Test cases for model <-> document conversion."""

    def test_book_document(self, sample_book):
        document = book_to_document(sample_book)

        assert document["_id"] == "book-1"
        assert "id" not in document
        assert document["owner_id"] == "owner-a"
        assert document["status"] == "reading"
        assert "rating" not in document
        assert "finished_at" not in document

    def test_book_round_trip(self, sample_book):
        assert document_to_book(book_to_document(sample_book)) == sample_book

    def test_user_round_trip(self):
        user = User(id="user-1", name="Ana", email="ana@example.com", password_hash="h")
        document = user_to_document(user)
        assert document["_id"] == "user-1"
        assert document_to_user(document) == user


class TestMongoUserRepository:
    """Test cases for MongoUserRepository."""

    @pytest.mark.asyncio
    async def test_duplicate_email_is_conflict(self, collection):
        collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
        repository = MongoUserRepository(collection)
        user = User(name="Ana", email="ana@example.com", password_hash="h")

        with pytest.raises(ConflictError):
            await repository.insert(user)

    @pytest.mark.asyncio
    async def test_get_by_email(self, collection):
        collection.find_one.return_value = {
            "_id": "user-1", "name": "Ana", "email": "ana@example.com", "password_hash": "h",
            "created_at": CREATED, "updated_at": CREATED,
        }
        repository = MongoUserRepository(collection)

        user = await repository.get_by_email("ana@example.com")

        assert user.id == "user-1"
        collection.find_one.assert_awaited_once_with({"email": "ana@example.com"})

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, collection):
        repository = MongoUserRepository(collection)
        assert await repository.get_by_id("missing") is None


class TestMongoBookRepository:
    """Test cases for MongoBookRepository."""

    @pytest.mark.asyncio
    async def test_insert_duplicate_isbn_is_conflict(self, collection, sample_book):
        collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
        repository = MongoBookRepository(collection)

        with pytest.raises(ConflictError) as exc_info:
            await repository.insert(sample_book)
        assert exc_info.value.message == "ISBN already registered"

    @pytest.mark.asyncio
    async def test_save_replaces_by_id(self, collection, sample_book):
        repository = MongoBookRepository(collection)

        await repository.save(sample_book)

        collection.replace_one.assert_awaited_once_with({"_id": "book-1"}, book_to_document(sample_book))

    @pytest.mark.asyncio
    async def test_get_owned_scopes_by_owner(self, collection, sample_book):
        collection.find_one.return_value = book_to_document(sample_book)
        repository = MongoBookRepository(collection)

        book = await repository.get_owned("owner-a", "book-1")

        assert book == sample_book
        collection.find_one.assert_awaited_once_with({"_id": "book-1", "owner_id": "owner-a"})

    @pytest.mark.asyncio
    async def test_find_by_isbn_scopes(self, collection):
        repository = MongoBookRepository(collection)

        await repository.find_by_isbn("123")
        await repository.find_by_isbn("123", owner_id="owner-a")

        assert collection.find_one.await_args_list == [
            call({"isbn": "123"}),
            call({"isbn": "123", "owner_id": "owner-a"}),
        ]

    @pytest.mark.asyncio
    async def test_delete_owned(self, collection):
        collection.delete_one.return_value = Mock(deleted_count=1)
        repository = MongoBookRepository(collection)
        assert await repository.delete_owned("owner-a", "book-1") is True

        collection.delete_one.return_value = Mock(deleted_count=0)
        assert await repository.delete_owned("owner-b", "book-1") is False

    @pytest.mark.asyncio
    async def test_search_builds_query(self, collection, sample_book):
        collection.count_documents.return_value = 12
        cursor = collection.find.return_value
        cursor.to_list.return_value = [book_to_document(sample_book)]
        repository = MongoBookRepository(collection)
        filters = BookFilters(status="reading", page=2, limit=5, sort_by="title", sort_order="desc")

        books, total = await repository.search("owner-a", filters)

        assert total == 12
        assert books == [sample_book]
        expected_filter = {"owner_id": "owner-a", "status": "reading"}
        collection.count_documents.assert_awaited_once_with(expected_filter)
        collection.find.assert_called_once_with(expected_filter)
        cursor.sort.assert_called_once_with([("title", -1), ("created_at", -1), ("_id", -1)])
        cursor.skip.assert_called_once_with(5)
        cursor.limit.assert_called_once_with(5)


class TestMongoDBManager:
    """Test cases for MongoDBManager."""

    def _manager(self, isbn_scope="global"):
        manager = MongoDBManager("mongodb://localhost:27017", "shelftrack_test", isbn_scope=isbn_scope)
        manager.database = MagicMock()
        manager.database.users.create_index = AsyncMock()
        manager.database.books.create_index = AsyncMock()
        return manager

    @pytest.mark.asyncio
    async def test_indexes_global_isbn(self):
        manager = self._manager()

        await manager._create_indexes()

        manager.database.users.create_index.assert_awaited_once_with("email", unique=True)
        books_calls = manager.database.books.create_index.await_args_list
        assert call(
            "isbn", unique=True, partialFilterExpression={"isbn": {"$exists": True}}, name="isbn_unique"
        ) in books_calls
        assert call("owner_id") in books_calls

    @pytest.mark.asyncio
    async def test_indexes_owner_isbn(self):
        manager = self._manager(isbn_scope="owner")

        await manager._create_indexes()

        first_call = manager.database.books.create_index.await_args_list[0]
        assert first_call.args[0] == [("owner_id", 1), ("isbn", 1)]
        assert first_call.kwargs["unique"] is True

    @pytest.mark.asyncio
    async def test_health_check(self):
        manager = self._manager()
        manager.database.command = AsyncMock(return_value={"ok": 1})
        assert await manager.health_check() == {"status": "healthy"}

        manager.database.command = AsyncMock(side_effect=Exception("down"))
        result = await manager.health_check()
        assert result["status"] == "unhealthy"
        assert result["error"] == "down"

    def test_repositories_use_collections(self):
        manager = self._manager()
        assert manager.user_repository().collection is manager.database.users
        assert manager.book_repository().collection is manager.database.books

    def test_repositories_require_connection(self):
        manager = MongoDBManager("mongodb://localhost:27017", "shelftrack_test")
        with pytest.raises(InternalError):
            manager.book_repository()
