"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class BookPayload(BaseModel):
    """Request body for create and update.

    Presence of title and author is checked by the service so that a
    missing field yields the 400 envelope rather than a schema error.
    """
    title: Optional[str] = Field(None, max_length=255, description="Book title")
    author: Optional[str] = Field(None, max_length=255, description="Book author")
    published_year: Optional[int] = Field(None, description="Year of first publication")
    genre: Optional[str] = Field(None, max_length=100, description="Book genre")


class Book(BaseModel):
    """Book record as stored."""
    id: int = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    published_year: Optional[int] = Field(None, description="Year of first publication")
    genre: Optional[str] = Field(None, description="Book genre")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class BookEnvelope(BaseModel):
    """Success envelope around a single book."""
    success: bool = True
    message: str
    data: Book


class BookListEnvelope(BaseModel):
    """Success envelope around a list of books."""
    success: bool = True
    message: str
    count: int = Field(..., description="Number of books returned")
    data: List[Book]


class BookSearchEnvelope(BookListEnvelope):
    """Success envelope for keyword search results."""
    search_term: str = Field(..., description="Term that was searched for")


class ErrorResponse(BaseModel):
    """Failure envelope."""
    success: bool = False
    message: str = Field(..., description="Error message")
    error: Optional[str] = Field(None, description="Underlying error detail")
    stack: Optional[str] = Field(None, description="Traceback, development mode only")


class ServiceInfo(BaseModel):
    """Root endpoint metadata."""
    success: bool = True
    message: str
    version: str
    endpoints: Dict[str, Dict[str, str]]


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
    pool: Optional[Dict[str, int]] = Field(None, description="Connection pool counters")
