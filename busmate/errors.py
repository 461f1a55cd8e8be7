"""Error types raised by the storage layer.

Repositories raise these; ``AccountService`` catches them and hands the
caller a sentinel instead.  A missing row is never an error: reads return
``None``.
"""

from __future__ import annotations


class StorageError(Exception):
    """Any failure of the underlying SQLite store."""


class DuplicateEmailError(StorageError):
    def __init__(self, email: str):
        super().__init__(f"An account with this email already exists: {email}")
        self.email = email


class ConstraintViolationError(StorageError):
    """Integrity error other than a duplicate email (FK, CHECK, NOT NULL)."""


class SchemaVersionError(StorageError):
    def __init__(self, stored: int, requested: int):
        super().__init__(
            f"Database schema version {stored} is newer than requested version {requested}"
        )
        self.stored = stored
        self.requested = requested


class ValidationError(ValueError):
    """Input rejected before it reached the database."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
