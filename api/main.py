"""
FastAPI main application for the ShelfTrack Library API.
"""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import get_current_user_id
from api.config import APIConfig, config
from api.models import (
    AuthResponse, BookListResponse, BookMessageResponse, BookResponse,
    ErrorResponse, HealthResponse, LoginRequest, MessageResponse, Pagination,
    RegisterRequest, StatsResponse, StatusUpdateRequest
)
from shelftrack.auth_service import AuthService
from shelftrack.books_service import BooksService
from shelftrack.database import MongoDBManager
from shelftrack.errors import ShelfError
from shelftrack.memory import InMemoryBookRepository, InMemoryUserRepository
from shelftrack.models import BookCreate, BookFilters, BookPatch
from shelftrack.security import TokenIssuer
from shelftrack.stats_service import StatsService
from utilities.logger import get_logger, reset_request_context, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager: wires storage into the services."""
    settings: APIConfig = app.state.config
    logger.info("Starting ShelfTrack API", storage_backend=settings.storage_backend)

    if settings.has_weak_secret():
        logger.warning("SECRET_KEY should be at least 32 characters long for production")

    db_manager: Optional[MongoDBManager] = None
    if settings.storage_backend == "mongodb":
        db_manager = MongoDBManager(
            connection_url=settings.mongodb_url,
            database_name=settings.mongodb_database,
            isbn_scope=settings.isbn_scope,
        )
        await db_manager.connect()
        users = db_manager.user_repository()
        books = db_manager.book_repository()
    else:
        users = InMemoryUserRepository()
        books = InMemoryBookRepository(isbn_scope=settings.isbn_scope)

    app.state.db_manager = db_manager
    app.state.auth_service = AuthService(users, app.state.token_issuer)
    app.state.books_service = BooksService(books, isbn_scope=settings.isbn_scope)
    app.state.stats_service = StatsService(books)
    app.state.started_at = time.monotonic()

    yield

    logger.info("Shutting down ShelfTrack API")
    if db_manager:
        await db_manager.disconnect()


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_books_service(request: Request) -> BooksService:
    return request.app.state.books_service


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service


def _error_response(status_code: int, error: str, details=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(exclude_none=True),
        headers=headers,
    )


def _validation_details(errors) -> list:
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in errors
    ]


# Auth endpoints
auth_router = APIRouter(prefix="/auth", tags=["Auth"])


@auth_router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Create an account and return it with a bearer token."""
    result = await auth_service.register(payload.name, payload.email, payload.password)
    return AuthResponse(message="User created successfully", user=result.user, token=result.token)


@auth_router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange email and password for a bearer token."""
    result = await auth_service.login(payload.email, payload.password)
    return AuthResponse(message="Login successful", user=result.user, token=result.token)


# Books endpoints
books_router = APIRouter(prefix="/books", tags=["Books"])


@books_router.post("", response_model=BookMessageResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: BookCreate,
    user_id: str = Depends(get_current_user_id),
    books_service: BooksService = Depends(get_books_service),
):
    """Add a book to the caller's library. Only title and author are required."""
    book = await books_service.create(user_id, payload)
    return BookMessageResponse(message="Book created successfully", book=book)


@books_router.get("", response_model=BookListResponse)
async def list_books(
    status_filter: Optional[str] = Query(None, alias="status"),
    rating: Optional[int] = None,
    author: Optional[str] = None,
    title: Optional[str] = None,
    published_year: Optional[int] = Query(None, alias="publishedYear"),
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    user_id: str = Depends(get_current_user_id),
    books_service: BooksService = Depends(get_books_service),
):
    """
    List the caller's books with filtering, sorting and pagination.

    - **status**: to_read, reading or read
    - **rating**: exact rating (1-5)
    - **author** / **title**: case-insensitive substring
    - **publishedYear**: exact year
    - **search**: substring of title or author
    - **page** / **limit**: 1-based page number and page size (default 1 / 10)
    - **sortBy** / **sortOrder**: any book field, ASC or DESC (default: newest first)
    """
    filters = BookFilters(
        status=status_filter,
        rating=rating,
        author=author,
        title=title,
        published_year=published_year,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = await books_service.list(user_id, filters)
    return BookListResponse(
        books=result.books,
        pagination=Pagination(
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        ),
    )


@books_router.get("/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    books_service: BooksService = Depends(get_books_service),
):
    """Get a single book by ID."""
    return BookResponse(book=await books_service.get(user_id, book_id))


@books_router.put("/{book_id}", response_model=BookMessageResponse)
async def update_book(
    book_id: str,
    payload: BookPatch,
    user_id: str = Depends(get_current_user_id),
    books_service: BooksService = Depends(get_books_service),
):
    """Update the fields present in the body; others are left unchanged."""
    book = await books_service.update(user_id, book_id, payload)
    return BookMessageResponse(message="Book updated successfully", book=book)


@books_router.patch("/{book_id}/status", response_model=BookMessageResponse)
async def update_book_status(
    book_id: str,
    payload: StatusUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    books_service: BooksService = Depends(get_books_service),
):
    """Change reading status; start and finish dates are filled in automatically."""
    book = await books_service.update_status(user_id, book_id, payload.status)
    return BookMessageResponse(message="Status updated successfully", book=book)


@books_router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    books_service: BooksService = Depends(get_books_service),
):
    """Delete a book."""
    await books_service.delete(user_id, book_id)
    return MessageResponse(message="Book deleted successfully")


# Statistics endpoint
stats_router = APIRouter(prefix="/stats", tags=["Statistics"])


@stats_router.get("", response_model=StatsResponse)
async def get_stats(
    user_id: str = Depends(get_current_user_id),
    stats_service: StatsService = Depends(get_stats_service),
):
    """Get statistics over the caller's library."""
    return StatsResponse(stats=await stats_service.get_stats(user_id))


def create_app(settings: Optional[APIConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration to use (defaults to the environment config)

    Returns:
        Configured application; storage is connected when its lifespan starts
    """
    settings = settings or config
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        debug=settings.debug,
    )

    app = FastAPI(
        title=settings.api_title,
        summary=settings.api_description,
        description="""
    Personal library management REST API.

    ## Features

    * **Accounts**: register and log in to get a bearer token
    * **Books**: create, update, delete and browse your own books
    * **Reading status**: to_read, reading, read with automatic start/finish dates
    * **Listing**: filter, search, sort and paginate
    * **Statistics**: totals, status breakdown, average rating and pages

    ## Authentication

    Include the token returned by register/login in the Authorization header:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.config = settings
    app.state.token_issuer = TokenIssuer(
        secret=settings.secret_key,
        expire_minutes=settings.access_token_expire_minutes,
    )
    app.state.db_manager = None
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request once it completes and echo a request id."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        reset_request_context(request_id)
        started = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )

    # Exception handlers
    @app.exception_handler(ShelfError)
    async def shelf_error_handler(request: Request, exc: ShelfError):
        """Map domain errors to their status code and {error} body."""
        if exc.status_code >= 500:
            logger.error("Request failed", error=exc.message, path=request.url.path)
        else:
            logger.info(
                "Request rejected",
                error=exc.message,
                status_code=exc.status_code,
                path=request.url.path,
            )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(exc.status_code, exc.message, exc.details, headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies and query strings are client errors (400)."""
        return _error_response(
            status.HTTP_400_BAD_REQUEST, "Validation error", _validation_details(exc.errors())
        )

    @app.exception_handler(PydanticValidationError)
    async def model_validation_handler(request: Request, exc: PydanticValidationError):
        return _error_response(
            status.HTTP_400_BAD_REQUEST, "Validation error", _validation_details(exc.errors())
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        error = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return _error_response(exc.status_code, error, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.exception("Unhandled exception", error=str(exc), path=request.url.path)
        # Runs outside the request middleware, so the request id is echoed here
        request_id = getattr(request.state, "request_id", None)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(exc) if settings.debug else None,
            headers={"X-Request-ID": request_id} if request_id else None,
        )

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        db_status = "healthy"
        db_manager = request.app.state.db_manager
        if db_manager:
            health_info = await db_manager.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="ok" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
            version=settings.api_version,
            database=db_status,
        )

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(books_router, prefix=settings.api_prefix)
    app.include_router(stats_router, prefix=settings.api_prefix)

    return app


# Create FastAPI application
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
