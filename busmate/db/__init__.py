"""Database layer: SQLite with schema versioning, ACID transactions and repositories."""

from busmate.db.database import Database, get_db, reset_db
from busmate.db.schema import DATABASE_NAME, SCHEMA_DDL, SCHEMA_VERSION

__all__ = ["Database", "get_db", "reset_db", "DATABASE_NAME", "SCHEMA_DDL", "SCHEMA_VERSION"]
