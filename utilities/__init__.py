"""
Shared helpers for the Book API: structured logging.
"""
