"""Repository for the ``users`` table: registration, sign-in and password changes."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from busmate.db.database import Database
from busmate.db.retry import retry_on_locked
from busmate.errors import ConstraintViolationError, DuplicateEmailError
from busmate.models.account import Account, AccountRole
from busmate.utils.passwords import burn_verification, check_password, make_password, needs_rehash
from busmate.utils.redact import mask_email
from busmate.validators import normalize_email, validate_role

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountRepository:
    """
    Single-Responsibility repository for account persistence.

    Emails are stored and looked up trimmed and lowercased.  Passwords only
    ever reach the table as Argon2 hashes.
    """

    def __init__(self, db: Database, clock: Optional[Callable[[], datetime]] = None):
        self._db = db
        self._clock = clock or _utc_now

    # -- Create ----------------------------------------------------------------

    @retry_on_locked()
    def create(
        self,
        email: str,
        password: str,
        role: Union[AccountRole, str],
        conn: Optional[sqlite3.Connection] = None,
    ) -> Account:
        """
        Insert a new account and return it with its assigned id.

        Raises ``DuplicateEmailError`` when the normalised email is already
        on file.  Pass ``conn`` to run inside a caller's transaction.
        """
        account = Account(
            email=normalize_email(email),
            role=validate_role(role),
            password_hash=make_password(password),
            created_at=self._clock().strftime("%Y-%m-%dT%H:%M:%SZ"),
            is_verified=False,
        )
        try:
            if conn is not None:
                cursor = self._insert(conn, account)
            else:
                with self._db.transaction() as tx:
                    cursor = self._insert(tx, account)
        except sqlite3.IntegrityError as e:
            if "users.email" in str(e):
                raise DuplicateEmailError(account.email) from e
            raise ConstraintViolationError(str(e)) from e

        account.account_id = cursor.lastrowid
        logger.info(
            f"Created {account.role.value} account {account.account_id} ({mask_email(account.email)})"
        )
        return account

    @staticmethod
    def _insert(conn: sqlite3.Connection, account: Account) -> sqlite3.Cursor:
        return conn.execute(
            """INSERT INTO users (email, password, role, created_at, is_verified)
               VALUES (?, ?, ?, ?, ?)""",
            (
                account.email, account.password_hash, account.role.value,
                account.created_at, 1 if account.is_verified else 0,
            ),
        )

    # -- Read ------------------------------------------------------------------

    @retry_on_locked()
    def email_exists(self, email: Optional[str]) -> bool:
        normalized = normalize_email(email)
        if not normalized:
            return False
        row = self._db.fetchone(
            "SELECT COUNT(*) AS n FROM users WHERE email = ?", (normalized,)
        )
        return bool(row and row["n"] > 0)

    @retry_on_locked()
    def get_by_id(self, account_id: int) -> Optional[Account]:
        row = self._db.fetchone("SELECT * FROM users WHERE account_id = ?", (account_id,))
        return Account.from_row(row) if row else None

    @retry_on_locked()
    def get_by_email(self, email: Optional[str]) -> Optional[Account]:
        normalized = normalize_email(email)
        if not normalized:
            return None
        row = self._db.fetchone("SELECT * FROM users WHERE email = ?", (normalized,))
        return Account.from_row(row) if row else None

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Optional[Account]:
        """
        Return the account when email and password match, otherwise ``None``.

        An unknown email and a wrong password are indistinguishable to the
        caller.
        """
        if not password:
            return None
        account = self.get_by_email(email)
        if account is None:
            burn_verification(password)
            logger.info(f"Sign-in failed for {mask_email(normalize_email(email))}")
            return None
        if not check_password(password, account.password_hash):
            logger.info(f"Sign-in failed for {mask_email(account.email)}")
            return None

        if needs_rehash(account.password_hash):
            self._store_hash(account.email, make_password(password))
            logger.info(f"Rehashed password for account {account.account_id}")
        return account

    # -- List ------------------------------------------------------------------

    @retry_on_locked()
    def count(self) -> int:
        row = self._db.fetchone("SELECT COUNT(*) AS n FROM users")
        return int(row["n"]) if row else 0

    @retry_on_locked()
    def list_all(self) -> list[Account]:
        rows = self._db.fetchall("SELECT * FROM users ORDER BY account_id")
        return [Account.from_row(r) for r in rows]

    # -- Update ----------------------------------------------------------------

    def update_password(self, email: Optional[str], new_password: str) -> bool:
        """Replace the password; True iff exactly one account was updated."""
        normalized = normalize_email(email)
        if not normalized:
            return False
        updated = self._store_hash(normalized, make_password(new_password))
        if updated == 1:
            logger.info(f"Password updated for {mask_email(normalized)}")
        return updated == 1

    @retry_on_locked()
    def _store_hash(self, normalized_email: str, password_hash: str) -> int:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET password = ? WHERE email = ?",
                (password_hash, normalized_email),
            )
        return cursor.rowcount
