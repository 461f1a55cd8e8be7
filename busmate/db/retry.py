"""Bounded retry for transient SQLite lock contention."""

from __future__ import annotations

import logging
import sqlite3
import time
from functools import wraps
from typing import Optional

from busmate.errors import StorageError

logger = logging.getLogger(__name__)

_TRANSIENT_MARKERS = ("database is locked", "database is busy", "database table is locked")


def is_transient(exc: sqlite3.Error) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and any(
        marker in str(exc).lower() for marker in _TRANSIENT_MARKERS
    )


def retry_on_locked(max_retries: Optional[int] = None, backoff: Optional[float] = None):
    """Decorator for retrying storage calls that hit a locked database.

    Only lock/busy errors are retried.  Whatever ``sqlite3.Error`` is still
    raised afterwards is re-raised as ``StorageError``; errors already typed
    by the repositories pass through untouched.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            from busmate.config import get_lock_backoff, get_lock_retries

            attempts = max(1, max_retries if max_retries is not None else get_lock_retries())
            delay = backoff if backoff is not None else get_lock_backoff()

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except sqlite3.Error as e:
                    if not is_transient(e) or attempt == attempts - 1:
                        raise StorageError(f"{func.__name__} failed: {e}") from e

                    sleep_time = delay * (2 ** attempt)
                    logger.warning(
                        f"{func.__name__}: {e}. Retry {attempt + 1}/{attempts - 1} after {sleep_time:.2f}s..."
                    )
                    time.sleep(sleep_time)

            raise StorageError(f"{func.__name__} failed after {attempts} attempts")
        return wrapper
    return decorator
