"""
Error taxonomy for the Book API.

Every failure leaving the service layer is a ``BookAPIError`` carrying the
HTTP status it maps to, a human readable message and, for store failures,
the underlying driver message.
"""

from typing import Optional

from fastapi import status
from sqlalchemy.exc import DBAPIError, SQLAlchemyError


class BookAPIError(Exception):
    """Base class for errors rendered as the failure envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error = error
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BookAPIError):
    """The client omitted or malformed a required field."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookAPIError):
    """The requested book does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class StoreError(BookAPIError):
    """Any failure raised by the relational store."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# MySQL server/client error numbers with a friendlier message
KNOWN_STORE_FAULTS = {
    1062: (status.HTTP_400_BAD_REQUEST, "Duplicate field value entered"),  # ER_DUP_ENTRY
    1452: (status.HTTP_400_BAD_REQUEST, "Referenced record not found"),  # ER_NO_REFERENCED_ROW_2
    1054: (status.HTTP_400_BAD_REQUEST, "Invalid field name"),  # ER_BAD_FIELD_ERROR
    1045: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Database access denied. Check your credentials."),  # ER_ACCESS_DENIED_ERROR
    2003: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Database connection refused. Check if MySQL is running."),  # CR_CONN_HOST_ERROR
    1049: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Database does not exist."),  # ER_BAD_DB_ERROR
}


def store_fault_code(exc: BaseException) -> Optional[int]:
    """Extract the driver's numeric error code, if any."""
    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def store_error(message: str, exc: SQLAlchemyError) -> StoreError:
    """
    Convert a SQLAlchemy failure into a StoreError.

    Known fault codes replace ``message`` and may downgrade the status to 400;
    the driver's own text is always kept in ``error``.
    """
    detail = str(exc.orig) if isinstance(exc, DBAPIError) and exc.orig is not None else str(exc)
    code = store_fault_code(exc)
    if code in KNOWN_STORE_FAULTS:
        status_code, friendly = KNOWN_STORE_FAULTS[code]
        return StoreError(friendly, error=detail, status_code=status_code)
    return StoreError(message, error=detail)
