"""Repository for the ``passengers`` and ``bus_operators`` profile tables."""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from busmate.db.database import Database
from busmate.db.retry import retry_on_locked
from busmate.errors import ConstraintViolationError
from busmate.models.account import AccountRole
from busmate.models.profile import (
    OperatorProfile,
    PassengerProfile,
    Profile,
    ProfileWithAccount,
    profile_columns,
)

logger = logging.getLogger(__name__)


class ProfileRepository:
    """
    Inserts and reads role-specific profiles.

    Nothing stops a second profile row for the same account; reads return
    the earliest one.
    """

    def __init__(self, db: Database):
        self._db = db

    # -- Create ----------------------------------------------------------------

    def insert_passenger(
        self, profile: PassengerProfile, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        return self._insert(profile, conn)

    def insert_operator(
        self, profile: OperatorProfile, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        if profile.years_experience < 0:
            raise ConstraintViolationError("years_experience must be non-negative")
        return self._insert(profile, conn)

    @retry_on_locked()
    def _insert(self, profile: Profile, conn: Optional[sqlite3.Connection]) -> int:
        values = profile_columns(profile)
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        sql = f"INSERT INTO {profile.TABLE} ({columns}) VALUES ({placeholders})"
        try:
            if conn is not None:
                cursor = conn.execute(sql, tuple(values.values()))
            else:
                with self._db.transaction() as tx:
                    cursor = tx.execute(sql, tuple(values.values()))
        except sqlite3.IntegrityError as e:
            raise ConstraintViolationError(f"{profile.TABLE}: {e}") from e

        setattr(profile, profile.KEY, cursor.lastrowid)
        logger.info(
            f"Inserted {profile.TABLE} row {cursor.lastrowid} for account {profile.account_id}"
        )
        return cursor.lastrowid

    # -- Read ------------------------------------------------------------------

    def get_passenger(self, account_id: int) -> Optional[ProfileWithAccount]:
        return self._get(PassengerProfile, account_id)

    def get_operator(self, account_id: int) -> Optional[ProfileWithAccount]:
        return self._get(OperatorProfile, account_id)

    @retry_on_locked()
    def _get(self, profile_cls: type, account_id: int) -> Optional[ProfileWithAccount]:
        row = self._db.fetchone(
            f"""SELECT p.*, u.email AS account_email, u.role AS account_role
                FROM {profile_cls.TABLE} p
                JOIN users u ON p.account_id = u.account_id
                WHERE p.account_id = ?
                ORDER BY p.{profile_cls.KEY}
                LIMIT 1""",
            (account_id,),
        )
        if row is None:
            return None
        return ProfileWithAccount(
            profile=profile_cls.from_row(row),
            email=row["account_email"],
            role=AccountRole(row["account_role"]),
        )

    @retry_on_locked()
    def count_for_account(self, account_id: int) -> dict[str, int]:
        """Number of profile rows per table owned by ``account_id``."""
        counts = {}
        for table in (PassengerProfile.TABLE, OperatorProfile.TABLE):
            row = self._db.fetchone(
                f"SELECT COUNT(*) AS n FROM {table} WHERE account_id = ?", (account_id,)
            )
            counts[table] = int(row["n"]) if row else 0
        return counts
