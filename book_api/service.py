"""
Book service: the six catalog operations over the pooled store.
"""

from datetime import datetime, timezone
from typing import Callable, List

import structlog
from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from book_api import database
from book_api.database import books
from book_api.errors import NotFoundError, ValidationError, store_error
from book_api.models import Book, BookPayload

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the books table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookService:
    """Database service for book operations.

    Holds the engine (and through it the connection pool) for the lifetime
    of the process. Each operation checks out one connection inside a
    ``with`` block, so the connection goes back to the pool on every path.
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utcnow):
        self.engine = engine
        self.clock = clock

    @staticmethod
    def _newest_first(stmt):
        return stmt.order_by(books.c.created_at.desc(), books.c.id.desc())

    @staticmethod
    def _require_title_and_author(payload: BookPayload) -> None:
        if not payload.title or not payload.author:
            raise ValidationError("Title and author required")

    def create(self, payload: BookPayload) -> Book:
        """
        Insert a new book.

        Args:
            payload: Submitted fields; title and author must be non-empty

        Returns:
            The stored Book with its generated id and timestamps
        """
        self._require_title_and_author(payload)

        now = self.clock()
        values = payload.dict()
        values.update(created_at=now, updated_at=now)

        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(books).values(**values))
                book_id = result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            logger.error("Failed to create book", title=payload.title, error=str(e))
            raise store_error("Error creating book", e)

        logger.info("Book created", book_id=book_id)
        return Book(id=book_id, **values)

    def list_all(self) -> List[Book]:
        """Return every book, most recently created first."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(self._newest_first(select(books))).mappings().all()
        except SQLAlchemyError as e:
            logger.error("Failed to list books", error=str(e))
            raise store_error("Error fetching books", e)

        return [Book(**row) for row in rows]

    def get_by_id(self, book_id: int) -> Book:
        """
        Get a single book by ID.

        Raises:
            NotFoundError: if no book has this id
        """
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(books).where(books.c.id == book_id)
                ).mappings().first()
        except SQLAlchemyError as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise store_error("Error fetching book", e)

        if row is None:
            raise NotFoundError("Book not found")
        return Book(**row)

    def update(self, book_id: int, payload: BookPayload) -> Book:
        """
        Overwrite all editable fields of a book.

        Fields omitted from the payload are stored as null. The update and
        the re-read happen in one transaction.

        Raises:
            ValidationError: if title or author is missing
            NotFoundError: if no book has this id
        """
        self._require_title_and_author(payload)

        values = payload.dict()
        values["updated_at"] = self.clock()

        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(books).where(books.c.id == book_id).values(**values)
                )
                if result.rowcount == 0:
                    raise NotFoundError("Book not found")

                row = conn.execute(
                    select(books).where(books.c.id == book_id)
                ).mappings().one()
        except SQLAlchemyError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise store_error("Error updating book", e)

        logger.info("Book updated", book_id=book_id)
        return Book(**row)

    def delete(self, book_id: int) -> Book:
        """
        Permanently remove a book.

        Returns:
            The record as it was immediately before deletion

        Raises:
            NotFoundError: if no book has this id
        """
        try:
            with self.engine.begin() as conn:
                row = conn.execute(
                    select(books).where(books.c.id == book_id).with_for_update()
                ).mappings().first()
                if row is None:
                    raise NotFoundError("Book not found")

                conn.execute(delete(books).where(books.c.id == book_id))
        except SQLAlchemyError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise store_error("Error deleting book", e)

        logger.info("Book deleted", book_id=book_id)
        return Book(**row)

    def search(self, term: str) -> List[Book]:
        """
        Find books whose title, author or genre contains ``term``.

        Matching is case-insensitive; ``%`` and ``_`` in the term are literal.

        Raises:
            ValidationError: if term is empty
        """
        if not term:
            raise ValidationError("Search term required")

        stmt = select(books).where(
            or_(
                books.c.title.icontains(term, autoescape=True),
                books.c.author.icontains(term, autoescape=True),
                books.c.genre.icontains(term, autoescape=True),
            )
        )

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(self._newest_first(stmt)).mappings().all()
        except SQLAlchemyError as e:
            logger.error("Failed to search books", search_term=term, error=str(e))
            raise store_error("Error searching books", e)

        logger.debug("Book search completed", search_term=term, count=len(rows))
        return [Book(**row) for row in rows]

    def ping(self) -> bool:
        """Check that the store is reachable."""
        return database.ping(self.engine)
