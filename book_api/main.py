"""
FastAPI application for the Book API.

``create_app`` builds the application around an explicitly owned store
engine. Run it with uvicorn's factory mode::

    uvicorn book_api.main:create_app --factory
"""

import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from book_api.config import BookAPIConfig, load_config
from book_api.database import create_store_engine, init_schema, pool_status, seed_sample_books
from book_api.errors import BookAPIError
from book_api.models import (
    BookEnvelope, BookListEnvelope, BookPayload, BookSearchEnvelope,
    ErrorResponse, HealthResponse, ServiceInfo
)
from book_api.service import BookService
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}

ENDPOINTS = {
    "books": {
        "list_all": "GET /books",
        "get_by_id": "GET /books/{id}",
        "create": "POST /books",
        "update": "PUT /books/{id}",
        "delete": "DELETE /books/{id}",
        "search": "GET /books/search?q=search_term",
    },
    "health": {
        "check": "GET /health",
    },
}


def get_book_service(request: Request) -> BookService:
    """Dependency returning the service built at startup."""
    return request.app.state.book_service


router = APIRouter(prefix="/books", tags=["Books"])

# Ids are signed 32-bit auto-increment keys; larger values never reach the store
MAX_BOOK_ID = 2**31 - 1
BookId = Path(..., ge=1, le=MAX_BOOK_ID, description="Book identifier")


@router.post("", response_model=BookEnvelope)
def create_book(
    payload: Optional[BookPayload] = None,
    service: BookService = Depends(get_book_service)
):
    """Create a book. ``title`` and ``author`` are required."""
    book = service.create(payload or BookPayload())
    return BookEnvelope(message="Book created successfully", data=book)


@router.get("", response_model=BookListEnvelope)
def list_books(service: BookService = Depends(get_book_service)):
    """List every book, most recently created first."""
    books = service.list_all()
    return BookListEnvelope(message="Books retrieved successfully", count=len(books), data=books)


# Declared before /{book_id} so "search" is never parsed as an id
@router.get("/search", response_model=BookSearchEnvelope)
def search_books(
    q: Optional[str] = None,
    service: BookService = Depends(get_book_service)
):
    """
    Case-insensitive substring search over title, author and genre.

    - **q**: search term (required)
    """
    books = service.search(q)
    return BookSearchEnvelope(
        message="Search completed successfully",
        count=len(books),
        search_term=q,
        data=books
    )


@router.get("/{book_id}", response_model=BookEnvelope)
def get_book(book_id: int = BookId, service: BookService = Depends(get_book_service)):
    """Get a single book by ID."""
    book = service.get_by_id(book_id)
    return BookEnvelope(message="Book retrieved successfully", data=book)


@router.put("/{book_id}", response_model=BookEnvelope)
def update_book(
    book_id: int = BookId,
    payload: Optional[BookPayload] = None,
    service: BookService = Depends(get_book_service)
):
    """Replace all editable fields of a book; omitted fields are cleared."""
    book = service.update(book_id, payload or BookPayload())
    return BookEnvelope(message="Book updated successfully", data=book)


@router.delete("/{book_id}", response_model=BookEnvelope)
def delete_book(book_id: int = BookId, service: BookService = Depends(get_book_service)):
    """Delete a book, returning the record as it was before removal."""
    book = service.delete(book_id)
    return BookEnvelope(message="Book deleted", data=book)


def _error_response(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    exc: Optional[BaseException] = None,
    development: bool = False
) -> JSONResponse:
    stack = None
    if development and exc is not None and status_code >= 500:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    content = ErrorResponse(message=message, error=error, stack=stack).dict(exclude_none=True)
    return JSONResponse(status_code=status_code, content=content)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def create_app(config: Optional[BookAPIConfig] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings; loaded from the environment when omitted
        engine: Store engine to use instead of building one from ``config``.
            An injected engine is left open on shutdown; its owner disposes it.

    Returns:
        Configured FastAPI application
    """
    config = config or load_config()
    development = config.is_development()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Book API", environment=config.environment)

        owns_engine = engine is None
        store = create_store_engine(config) if owns_engine else engine
        try:
            if config.create_schema:
                init_schema(store)
            if config.seed_sample_data:
                seed_sample_books(store)
        except Exception as e:
            logger.error("Failed to prepare database", error=str(e))
            if owns_engine:
                store.dispose()
            raise

        app.state.book_service = BookService(store)
        logger.info("Database service ready")

        yield

        logger.info("Shutting down Book API")
        if owns_engine:
            store.dispose()

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Access log line per request plus security headers."""
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            raise

        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)

        logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
            client=request.client.host if request.client else None,
        )
        return response

    # Exception handlers
    @app.exception_handler(BookAPIError)
    async def book_api_error_handler(request: Request, exc: BookAPIError):
        """Render service errors as the failure envelope."""
        return _error_response(exc.status_code, exc.message, exc.error, exc, development)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies, parameters and ids are client errors."""
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request data",
            _describe_validation_errors(exc)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Unmatched paths and methods become the route-not-found envelope."""
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            url = request.url.path
            if request.url.query:
                url = f"{url}?{request.url.query}"
            return _error_response(status.HTTP_404_NOT_FOUND, f"Route {url} not found")
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal Server Error",
            str(exc) if development else None,
            exc,
            development
        )

    @app.get("/", response_model=ServiceInfo, tags=["Info"])
    def root():
        """Service metadata and endpoint map."""
        return ServiceInfo(
            message="Book API is running",
            version=config.api_version,
            endpoints=ENDPOINTS
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check(service: BookService = Depends(get_book_service)):
        """Health check endpoint."""
        healthy = service.ping()
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=config.api_version,
            database_status="healthy" if healthy else "unhealthy",
            pool=pool_status(service.engine)
        )

    app.include_router(router)

    return app
