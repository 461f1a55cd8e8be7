"""Unit tests for the DB layer: schema, versioning and both repositories.

Every test uses a fresh temporary SQLite file so tests are isolated and
leave nothing behind in the repo.
"""

from __future__ import annotations

import os
import shutil
import sqlite3
import tempfile
import threading
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from argon2 import PasswordHasher

from busmate.db.account_repo import AccountRepository
from busmate.db.database import Database
from busmate.db.profile_repo import ProfileRepository
from busmate.db.retry import retry_on_locked
from busmate.db.schema import SCHEMA_VERSION
from busmate.errors import (
    ConstraintViolationError,
    DuplicateEmailError,
    SchemaVersionError,
    StorageError,
)
from busmate.models.account import Account, AccountRole
from busmate.models.profile import OperatorProfile, PassengerProfile
from busmate.utils.passwords import check_password


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _TempDirMixin:
    def make_db(self, version: int = SCHEMA_VERSION) -> Database:
        db = Database(path=self.tmpdir / "BusMate.db", version=version)
        db.init()
        return db

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)


def _fixed_clock() -> datetime:
    return datetime(2024, 3, 1, 8, 30, 0, tzinfo=timezone.utc)


def _passenger(account_id: int, **overrides) -> PassengerProfile:
    defaults = dict(
        account_id=account_id,
        full_name="Jane Perera",
        phone="+94 71 234 5678",
        date_of_birth="12/04/1998",
        gender="Female",
        address="12 Temple Road, Kandy",
        emergency_contact_name="Nimal Perera",
        emergency_contact_phone="+94 77 111 2222",
        blood_type="O+",
    )
    defaults.update(overrides)
    return PassengerProfile(**defaults)


def _operator(account_id: int, **overrides) -> OperatorProfile:
    defaults = dict(
        account_id=account_id,
        full_name="Sunil Fernando",
        license_number="B1234567",
        vehicle_registration="NB-4521",
        route_number="138",
        years_experience=12,
        vehicle_type="Standard bus",
        operating_company="SLTB",
    )
    defaults.update(overrides)
    return OperatorProfile(**defaults)


# ===========================================================================
# 1. Schema manager
# ===========================================================================

class TestSchemaManager(_TempDirMixin, unittest.TestCase):
    def test_tables_created(self):
        db = self.make_db()
        self.assertEqual(db.table_names(), ["bus_operators", "passengers", "users"])
        db.close()

    def test_version_recorded(self):
        db = self.make_db()
        self.assertEqual(db.schema_version(), SCHEMA_VERSION)
        db.close()

    def test_foreign_keys_enabled(self):
        db = self.make_db()
        row = db.fetchone("PRAGMA foreign_keys")
        self.assertEqual(row["foreign_keys"], 1)
        db.close()

    def test_reopen_same_version_keeps_data(self):
        db = self.make_db()
        AccountRepository(db).create("keep@example.com", "secret1", AccountRole.PASSENGER)
        db.close()

        db = self.make_db()
        self.assertEqual(AccountRepository(db).count(), 1)
        db.close()

    def test_upgrade_discards_all_rows(self):
        db = self.make_db(version=3)
        accounts = AccountRepository(db)
        profiles = ProfileRepository(db)
        p = accounts.create("p@example.com", "secret1", AccountRole.PASSENGER)
        o = accounts.create("o@example.com", "secret1", AccountRole.BUS_OPERATOR)
        profiles.insert_passenger(_passenger(p.account_id))
        profiles.insert_operator(_operator(o.account_id))
        db.close()

        db = self.make_db(version=4)
        self.assertEqual(db.schema_version(), 4)
        for table in ("users", "passengers", "bus_operators"):
            row = db.fetchone(f"SELECT COUNT(*) AS n FROM {table}")
            self.assertEqual(row["n"], 0, table)
        self.assertEqual(db.table_names(), ["bus_operators", "passengers", "users"])
        db.close()

    def test_upgrade_restarts_ids(self):
        db = self.make_db(version=3)
        AccountRepository(db).create("a@example.com", "secret1", "passenger")
        AccountRepository(db).create("b@example.com", "secret1", "passenger")
        db.close()

        db = self.make_db(version=4)
        created = AccountRepository(db).create("c@example.com", "secret1", "passenger")
        self.assertEqual(created.account_id, 1)
        db.close()

    def test_downgrade_rejected(self):
        self.make_db(version=5).close()
        db = Database(path=self.tmpdir / "BusMate.db", version=3)
        with self.assertRaises(SchemaVersionError):
            db.init()
        db.close()

    def test_context_manager_inits_and_closes(self):
        with Database(path=self.tmpdir / "ctx.db", version=2) as db:
            self.assertEqual(db.schema_version(), 2)
            self.assertEqual(db.open_connections, 1)
        self.assertEqual(db.open_connections, 0)

    def test_each_thread_gets_its_own_connection(self):
        db = self.make_db()
        main_conn = db.connection()
        self.assertIs(db.connection(), main_conn)

        seen = []
        worker = threading.Thread(target=lambda: seen.append(db.connection()))
        worker.start()
        worker.join()

        self.assertEqual(len(seen), 1)
        self.assertIsNot(seen[0], main_conn)
        self.assertEqual(db.open_connections, 2)
        db.close()
        self.assertEqual(db.open_connections, 0)

    def test_explicit_arguments_ignore_environment(self):
        with patch.dict(os.environ, {"BUSMATE_DB_VERSION": "abc"}):
            with Database(path=self.tmpdir / "env.db", version=3) as db:
                self.assertEqual(db.schema_version(), 3)
                repo = AccountRepository(db)
                repo.create("jane@example.com", "secret1", "passenger")
                self.assertEqual(repo.count(), 1)

    def test_transaction_rollback(self):
        db = self.make_db()
        try:
            with db.transaction() as conn:
                conn.execute(
                    "INSERT INTO users (email, password, role) VALUES (?, ?, ?)",
                    ("gone@example.com", "x", "passenger"),
                )
                raise ValueError("Force rollback")
        except ValueError:
            pass
        self.assertIsNone(db.fetchone("SELECT * FROM users WHERE email = 'gone@example.com'"))
        db.close()

    def test_invalid_version(self):
        with self.assertRaises(ValueError):
            Database(path=self.tmpdir / "x.db", version=0)


# ===========================================================================
# 2. Account repository
# ===========================================================================

class TestAccountRepository(_TempDirMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.db = self.make_db()
        self.repo = AccountRepository(self.db, clock=_fixed_clock)

    def tearDown(self):
        self.db.close()
        super().tearDown()

    def test_create_assigns_first_id(self):
        account = self.repo.create("Jane@Example.com", "secret1", "passenger")
        self.assertEqual(account.account_id, 1)
        self.assertEqual(account.email, "jane@example.com")
        self.assertEqual(account.role, AccountRole.PASSENGER)

    def test_create_defaults(self):
        self.repo.create("jane@example.com", "secret1", AccountRole.PASSENGER)
        stored = self.repo.get_by_email("jane@example.com")
        self.assertFalse(stored.is_verified)
        self.assertEqual(stored.created_at, "2024-03-01T08:30:00Z")

    def test_password_is_hashed(self):
        self.repo.create("jane@example.com", "secret1", AccountRole.PASSENGER)
        row = self.db.fetchone("SELECT password FROM users WHERE email = 'jane@example.com'")
        self.assertNotEqual(row["password"], "secret1")
        self.assertTrue(row["password"].startswith("$argon2"))
        self.assertTrue(check_password("secret1", row["password"]))

    def test_duplicate_email_differs_only_in_case_and_space(self):
        self.repo.create("jane@example.com", "secret1", AccountRole.PASSENGER)
        with self.assertRaises(DuplicateEmailError) as ctx:
            self.repo.create("  JANE@example.COM ", "other12", AccountRole.BUS_OPERATOR)
        self.assertEqual(ctx.exception.email, "jane@example.com")
        self.assertEqual(self.repo.count(), 1)

    def test_ids_not_reused(self):
        first = self.repo.create("a@example.com", "secret1", "passenger")
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM users WHERE account_id = ?", (first.account_id,))
        second = self.repo.create("b@example.com", "secret1", "passenger")
        self.assertGreater(second.account_id, first.account_id)

    def test_email_exists(self):
        self.repo.create("jane@example.com", "secret1", "passenger")
        self.assertTrue(self.repo.email_exists("jane@example.com"))
        self.assertTrue(self.repo.email_exists("  Jane@Example.com "))
        self.assertFalse(self.repo.email_exists("john@example.com"))

    def test_email_exists_empty_input_skips_query(self):
        with patch.object(self.db, "fetchone") as fetchone:
            self.assertFalse(self.repo.email_exists(None))
            self.assertFalse(self.repo.email_exists(""))
            self.assertFalse(self.repo.email_exists("   "))
            fetchone.assert_not_called()

    def test_authenticate(self):
        created = self.repo.create("Jane@Example.com", "secret1", "passenger")
        account = self.repo.authenticate("JANE@example.com", "secret1")
        self.assertIsNotNone(account)
        self.assertEqual(account.account_id, created.account_id)
        self.assertIsNone(self.repo.authenticate("jane@example.com", "wrong"))
        self.assertIsNone(self.repo.authenticate("jane@example.com", "Secret1"))
        self.assertIsNone(self.repo.authenticate("nobody@example.com", "secret1"))
        self.assertIsNone(self.repo.authenticate("jane@example.com", ""))

    def test_authenticate_plaintext_row_never_matches(self):
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO users (email, password, role) VALUES (?, ?, ?)",
                ("legacy@example.com", "secret1", "passenger"),
            )
        self.assertIsNone(self.repo.authenticate("legacy@example.com", "secret1"))

    def test_authenticate_rehashes_outdated_hash(self):
        weak = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1).hash("secret1")
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO users (email, password, role) VALUES (?, ?, ?)",
                ("old@example.com", weak, "passenger"),
            )
        self.assertIsNotNone(self.repo.authenticate("old@example.com", "secret1"))
        row = self.db.fetchone("SELECT password FROM users WHERE email = 'old@example.com'")
        self.assertNotEqual(row["password"], weak)
        self.assertTrue(check_password("secret1", row["password"]))

    def test_update_password(self):
        self.repo.create("jane@example.com", "secret1", "passenger")
        self.assertTrue(self.repo.update_password("JANE@example.com", "newpass1"))
        self.assertIsNotNone(self.repo.authenticate("jane@example.com", "newpass1"))
        self.assertIsNone(self.repo.authenticate("jane@example.com", "secret1"))

    def test_update_password_unknown_email(self):
        self.assertFalse(self.repo.update_password("nobody@example.com", "newpass1"))
        self.assertFalse(self.repo.update_password("", "newpass1"))

    def test_count_and_list(self):
        self.assertEqual(self.repo.count(), 0)
        self.assertEqual(self.repo.list_all(), [])
        self.repo.create("b@example.com", "secret1", "passenger")
        self.repo.create("a@example.com", "secret1", "bus_operator")
        self.assertEqual(self.repo.count(), 2)
        emails = [a.email for a in self.repo.list_all()]
        self.assertEqual(emails, ["b@example.com", "a@example.com"])

    def test_to_dict_hides_password(self):
        account = self.repo.create("jane@example.com", "secret1", "passenger")
        d = account.to_dict()
        self.assertNotIn("password", d)
        self.assertNotIn("password_hash", d)
        self.assertEqual(d["role"], "passenger")

    def test_create_inside_outer_transaction_rolls_back(self):
        try:
            with self.db.transaction() as conn:
                self.repo.create("tx@example.com", "secret1", "passenger", conn=conn)
                raise RuntimeError("abort")
        except RuntimeError:
            pass
        self.assertFalse(self.repo.email_exists("tx@example.com"))


class TestAccountModel(unittest.TestCase):
    def test_from_row(self):
        row = {
            "account_id": 7,
            "email": "bob@example.com",
            "password": "$argon2id$...",
            "role": "bus_operator",
            "created_at": "2024-01-01T00:00:00Z",
            "is_verified": 0,
        }
        a = Account.from_row(row)
        self.assertEqual(a.role, AccountRole.BUS_OPERATOR)
        self.assertTrue(a.is_operator)
        self.assertFalse(a.is_verified)
        self.assertNotIn("argon2", repr(a))


# ===========================================================================
# 3. Profile repository
# ===========================================================================

class TestProfileRepository(_TempDirMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.db = self.make_db()
        self.accounts = AccountRepository(self.db)
        self.repo = ProfileRepository(self.db)
        self.passenger = self.accounts.create("jane@example.com", "secret1", "passenger")
        self.operator = self.accounts.create("driver@example.com", "secret1", "bus_operator")

    def tearDown(self):
        self.db.close()
        super().tearDown()

    def test_passenger_missing_before_insert(self):
        self.assertIsNone(self.repo.get_passenger(self.passenger.account_id))

    def test_passenger_roundtrip_verbatim(self):
        profile = _passenger(
            self.passenger.account_id,
            full_name="  Jane   Perera ",
            address="No. 5,\nLake Rd ",
            date_of_birth="not a date",
        )
        self.repo.insert_passenger(profile)
        fetched = self.repo.get_passenger(self.passenger.account_id)
        self.assertIsNotNone(fetched)
        self.assertEqual(fetched.profile.full_name, "  Jane   Perera ")
        self.assertEqual(fetched.profile.address, "No. 5,\nLake Rd ")
        self.assertEqual(fetched.profile.date_of_birth, "not a date")
        self.assertEqual(fetched.profile.blood_type, "O+")
        self.assertEqual(fetched.email, "jane@example.com")
        self.assertEqual(fetched.role, AccountRole.PASSENGER)
        self.assertEqual(fetched.profile.passenger_id, profile.passenger_id)

    def test_operator_roundtrip(self):
        self.repo.insert_operator(_operator(self.operator.account_id))
        fetched = self.repo.get_operator(self.operator.account_id)
        self.assertEqual(fetched.profile.license_number, "B1234567")
        self.assertEqual(fetched.profile.years_experience, 12)
        self.assertEqual(fetched.role, AccountRole.BUS_OPERATOR)
        d = fetched.to_dict()
        self.assertEqual(d["email"], "driver@example.com")
        self.assertEqual(d["route_number"], "138")

    def test_tables_are_separate(self):
        self.repo.insert_operator(_operator(self.operator.account_id))
        self.assertIsNone(self.repo.get_passenger(self.operator.account_id))

    def test_second_insert_creates_second_row(self):
        self.repo.insert_passenger(_passenger(self.passenger.account_id, full_name="First"))
        self.repo.insert_passenger(_passenger(self.passenger.account_id, full_name="Second"))
        counts = self.repo.count_for_account(self.passenger.account_id)
        self.assertEqual(counts["passengers"], 2)
        self.assertEqual(self.repo.get_passenger(self.passenger.account_id).full_name, "First")

    def test_fk_constraint(self):
        with self.assertRaises(ConstraintViolationError):
            self.repo.insert_passenger(_passenger(999))

    def test_not_null_constraint(self):
        with self.assertRaises(ConstraintViolationError):
            self.repo.insert_operator(_operator(self.operator.account_id, license_number=None))

    def test_negative_experience_rejected(self):
        with self.assertRaises(ConstraintViolationError):
            self.repo.insert_operator(_operator(self.operator.account_id, years_experience=-1))


# ===========================================================================
# 4. Lock retry
# ===========================================================================

class TestRetryOnLocked(unittest.TestCase):
    def test_retries_then_succeeds(self):
        calls = []

        @retry_on_locked(max_retries=3, backoff=0)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        self.assertEqual(flaky(), "ok")
        self.assertEqual(len(calls), 3)

    def test_gives_up_after_max(self):
        @retry_on_locked(max_retries=2, backoff=0)
        def always_locked():
            raise sqlite3.OperationalError("database is locked")

        with self.assertRaises(StorageError):
            always_locked()

    def test_other_errors_not_retried(self):
        calls = []

        @retry_on_locked(max_retries=5, backoff=0)
        def broken():
            calls.append(1)
            raise sqlite3.OperationalError("no such table: users")

        with self.assertRaises(StorageError):
            broken()
        self.assertEqual(len(calls), 1)

    def test_typed_errors_pass_through(self):
        @retry_on_locked(max_retries=3, backoff=0)
        def dup():
            raise DuplicateEmailError("a@example.com")

        with self.assertRaises(DuplicateEmailError):
            dup()


if __name__ == "__main__":
    unittest.main()
