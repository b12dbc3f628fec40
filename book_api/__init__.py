"""
FastAPI RESTful API for a book catalog backed by a relational store.

This package provides:
- Create, read, update and delete of book records
- Case-insensitive keyword search over title, author and genre
- A uniform success/failure JSON envelope
- Pooled database access through SQLAlchemy
"""
