"""
Relational store plumbing: the books table and the pooled engine.
"""

from typing import Optional

import structlog
from sqlalchemy import (
    Column, DateTime, Integer, MetaData, String, Table, create_engine, func, insert,
    select, text
)
from sqlalchemy.dialects import mysql
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement

from book_api.config import BookAPIConfig

logger = structlog.get_logger(__name__)

metadata = MetaData()

# Microsecond precision on MySQL so that consecutive writes stay ordered
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


class created_default(FunctionElement):
    """Server-side default for rows inserted without a ``created_at``."""
    type = DateTime()
    inherit_cache = True


class updated_default(FunctionElement):
    """
    Server-side default for ``updated_at``.

    On MySQL the column also refreshes itself on every UPDATE. Other
    dialects only get the insert default; the service stamps updates.
    """
    type = DateTime()
    inherit_cache = True


@compiles(created_default)
@compiles(updated_default)
def _current_timestamp(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(created_default, "mysql")
def _mysql_current_timestamp(element, compiler, **kw):
    # Precision must match DATETIME(6)
    return "CURRENT_TIMESTAMP(6)"


@compiles(updated_default, "mysql")
def _mysql_current_timestamp_on_update(element, compiler, **kw):
    return "CURRENT_TIMESTAMP(6) ON UPDATE CURRENT_TIMESTAMP(6)"


books = Table(
    "books",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("author", String(255), nullable=False),
    Column("published_year", Integer, nullable=True),
    Column("genre", String(100), nullable=True),
    Column("created_at", Timestamp, nullable=False, server_default=created_default()),
    Column("updated_at", Timestamp, nullable=False, server_default=updated_default()),
)

# Starter catalog loaded by ``seed_sample_books``
SAMPLE_BOOKS = [
    {"title": "The Great Gatsby", "author": "F. Scott Fitzgerald", "published_year": 1925, "genre": "Fiction"},
    {"title": "To Kill a Mockingbird", "author": "Harper Lee", "published_year": 1960, "genre": "Fiction"},
    {"title": "1984", "author": "George Orwell", "published_year": 1949, "genre": "Dystopian"},
    {"title": "Pride and Prejudice", "author": "Jane Austen", "published_year": 1813, "genre": "Romance"},
    {"title": "The Hobbit", "author": "J.R.R. Tolkien", "published_year": 1937, "genre": "Fantasy"},
    {"title": "The Catcher in the Rye", "author": "J.D. Salinger", "published_year": 1951, "genre": "Fiction"},
    {"title": "Lord of the Flies", "author": "William Golding", "published_year": 1954, "genre": "Fiction"},
    {"title": "Animal Farm", "author": "George Orwell", "published_year": 1945, "genre": "Allegory"},
    {"title": "The Alchemist", "author": "Paulo Coelho", "published_year": 1988, "genre": "Fiction"},
    {"title": "Brave New World", "author": "Aldous Huxley", "published_year": 1932, "genre": "Dystopian"},
]


def create_store_engine(config: BookAPIConfig) -> Engine:
    """
    Create the pooled engine for the configured store.

    A checkout blocks for up to ``db_pool_timeout`` seconds when all
    ``db_pool_size + db_max_overflow`` connections are in use.
    """
    engine_kwargs = {
        "pool_size": config.db_pool_size,
        "max_overflow": config.db_max_overflow,
        "pool_timeout": config.db_pool_timeout,
        "pool_recycle": config.db_pool_recycle,
        "pool_pre_ping": True,  # Validate connections before use
        "echo": False,
    }

    logger.info(
        "Creating database engine",
        driver=config.db_driver,
        host=config.db_host,
        port=config.db_port,
        database=config.db_name,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
    )
    return create_engine(config.database_url(), **engine_kwargs)


def init_schema(engine: Engine) -> None:
    """Create the books table if it doesn't exist."""
    metadata.create_all(engine, checkfirst=True)
    logger.info("Database schema ready", tables=sorted(metadata.tables))


def seed_sample_books(engine: Engine) -> int:
    """
    Load ``SAMPLE_BOOKS`` into an empty books table.

    Timestamps come from the column server defaults. A table that already
    holds rows is left untouched.

    Returns:
        Number of books inserted
    """
    with engine.begin() as conn:
        existing = conn.execute(select(func.count()).select_from(books)).scalar_one()
        if existing:
            logger.info("Skipping sample data, books table is not empty", existing=existing)
            return 0
        conn.execute(insert(books), SAMPLE_BOOKS)

    logger.info("Sample books loaded", count=len(SAMPLE_BOOKS))
    return len(SAMPLE_BOOKS)


def ping(engine: Engine) -> bool:
    """Return True when the store answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False


def pool_status(engine: Engine) -> Optional[dict]:
    """Current connection pool counters, when the pool tracks them."""
    pool = engine.pool
    if not hasattr(pool, "checkedout"):
        return None
    return {
        "size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "overflow": pool.overflow(),
    }
