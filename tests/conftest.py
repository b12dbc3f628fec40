"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from book_api.config import BookAPIConfig
from book_api.database import init_schema
from book_api.main import create_app
from book_api.models import BookPayload
from book_api.service import BookService


class StepClock:
    """Deterministic clock that moves forward by ``step`` on every call."""

    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0), step=timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self):
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def api_config():
    """Configuration with dummy store credentials."""
    return BookAPIConfig(
        _env_file=None,
        db_host="localhost",
        db_user="books",
        db_password="secret",
        db_name="bookstore_test",
        log_level="WARNING",
        log_format="console",
        environment="production",
        create_schema=True,
    )


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    """Strictly increasing clock for timestamp assertions."""
    return StepClock()


@pytest.fixture
def book_service(engine, clock):
    """Service over a fresh schema."""
    init_schema(engine)
    return BookService(engine, clock=clock)


@pytest.fixture
def client(api_config, engine):
    """Test client with lifespan events running."""
    app = create_app(api_config, engine=engine)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_book_data():
    """Request body for a complete book."""
    return {
        "title": "Dune",
        "author": "Frank Herbert",
        "published_year": 1965,
        "genre": "Sci-Fi",
    }


@pytest.fixture
def catalog_payloads():
    """A handful of books in insertion order."""
    return [
        BookPayload(title="The Great Gatsby", author="F. Scott Fitzgerald", published_year=1925, genre="Fiction"),
        BookPayload(title="1984", author="George Orwell", published_year=1949, genre="Dystopian"),
        BookPayload(title="The Hobbit", author="J.R.R. Tolkien", published_year=1937, genre="Fantasy"),
        BookPayload(title="Animal Farm", author="George Orwell", published_year=1945, genre="Allegory"),
        BookPayload(title="Brave New World", author="Aldous Huxley", published_year=1932, genre="Dystopian"),
        BookPayload(title="Untitled Draft", author="Anonymous"),
    ]
