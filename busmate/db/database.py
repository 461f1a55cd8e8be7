"""Core database connection: schema versioning and ACID transactions."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

from busmate.db.schema import DROP_DDL, SCHEMA_DDL, TABLES
from busmate.errors import SchemaVersionError

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite database wrapper with schema versioning and explicit ACID
    transaction support.

    The schema version is kept in ``PRAGMA user_version``.  ``init()`` creates
    the tables on a fresh file and calls ``upgrade()`` when the file was
    written by an older version.  Every mutation goes through
    ``transaction()``, which commits on success and rolls back on failure.

    Each thread gets its own connection, so a transaction opened on one
    thread is never committed or rolled back by another.  Writers on
    different threads are serialised by SQLite's file lock and wait up to
    ``timeout`` seconds for it.
    """

    def __init__(
        self,
        path: Optional[Path | str] = None,
        version: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        if path is None or version is None:
            from busmate.config import get_store_config
            cfg = get_store_config()
            path = cfg.db_path if path is None else path
            version = cfg.db_version if version is None else version
        if timeout is None:
            from busmate.config import get_lock_timeout
            timeout = get_lock_timeout()
        self.path: Path = Path(path) if isinstance(path, str) else path
        self.version: int = version
        if self.version < 1:
            raise ValueError(f"Schema version must be >= 1, got {self.version}")
        self.timeout: float = timeout
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()

    # -- connection lifecycle --------------------------------------------------

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def connection(self) -> sqlite3.Connection:
        """The calling thread's connection, opened on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self._ensure_dir()
            conn = sqlite3.connect(str(self.path), timeout=self.timeout, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            self._local.conn = conn
            with self._conn_lock:
                self._connections.append(conn)
        return conn

    @property
    def open_connections(self) -> int:
        with self._conn_lock:
            return len(self._connections)

    def close(self) -> None:
        """Close every connection opened by any thread."""
        with self._conn_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

    def __enter__(self) -> "Database":
        self.init()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- schema management -----------------------------------------------------

    def schema_version(self) -> int:
        row = self.connection().execute("PRAGMA user_version").fetchone()
        return int(row[0])

    def init(self) -> None:
        """Create or upgrade the tables so they match ``self.version``."""
        stored = self.schema_version()
        if stored == 0:
            logger.info(f"Creating schema v{self.version} at {self.path}")
            self._apply_script(SCHEMA_DDL, self.version)
        elif stored < self.version:
            self.upgrade(stored, self.version)
        elif stored > self.version:
            raise SchemaVersionError(stored, self.version)
        else:
            self.connection().executescript(SCHEMA_DDL)
            self.connection().commit()

    def upgrade(self, old_version: int, new_version: int) -> None:
        """
        Move the schema from ``old_version`` to ``new_version``.

        There are no per-version migration steps: all three tables are
        dropped and recreated empty, so every account and profile on file is
        lost.  The drop and the recreate happen in one transaction.
        """
        logger.warning(
            f"Upgrading database {self.path} from v{old_version} to v{new_version}; "
            f"dropping tables {', '.join(TABLES)} (all rows are discarded)"
        )
        self._apply_script(f"{DROP_DDL}\n{SCHEMA_DDL}", new_version)
        self.version = new_version

    def _apply_script(self, ddl: str, version: int) -> None:
        conn = self.connection()
        script = f"BEGIN;\n{ddl}\nPRAGMA user_version = {int(version)};\nCOMMIT;"
        try:
            conn.executescript(script)
        except sqlite3.Error:
            if conn.in_transaction:
                conn.rollback()
            raise

    def table_names(self) -> list[str]:
        rows = self.fetchall(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [r["name"] for r in rows]

    # -- transaction helpers ---------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """ACID transaction: commits on success, rolls back on exception."""
        conn = self.connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    # -- low-level query helpers -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self.connection().execute(sql, params)

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[dict[str, Any]]:
        row = self.connection().execute(sql, params).fetchone()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        rows = self.connection().execute(sql, params).fetchall()
        return [dict(r) for r in rows]


# -- module singleton ----------------------------------------------------------

_default_db: Optional[Database] = None


def get_db(path: Optional[Path] = None) -> Database:
    """Return (and lazily initialise) the module-level Database singleton."""
    global _default_db
    if _default_db is None:
        _default_db = Database(path)
        _default_db.init()
    return _default_db


def reset_db() -> None:
    """Close and discard the singleton (useful in tests)."""
    global _default_db
    if _default_db is not None:
        _default_db.close()
        _default_db = None
