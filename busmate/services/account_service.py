"""Account service: the fail-soft API that UI callers talk to.

Repositories raise typed errors.  This is the single place where those are
turned into the sentinel values callers branch on (``-1``, ``False``,
``None``), so nothing above this layer needs exception handling.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from busmate.db.account_repo import AccountRepository
from busmate.db.database import Database
from busmate.db.profile_repo import ProfileRepository
from busmate.db.retry import retry_on_locked
from busmate.errors import StorageError, ValidationError
from busmate.models.account import Account, AccountRole
from busmate.models.profile import OperatorProfile, PassengerProfile, Profile, ProfileWithAccount
from busmate.utils.redact import redact
from busmate.validators import (
    parse_years_experience,
    validate_email,
    validate_password,
    validate_role,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FAILURES = (StorageError, ValidationError, sqlite3.Error)


@dataclass
class Outcome(Generic[T]):
    """Result of a store operation: a value or the error that stopped it."""
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


class AccountService:
    """
    Facade over account and profile persistence.

    Every public method returns a plain value; failures are logged and
    collapsed to a sentinel.  The ``*_result`` variants return an
    ``Outcome`` for callers that need to know which error occurred.
    """

    def __init__(self, db: Database, clock: Optional[Callable[[], datetime]] = None):
        self._db = db
        self._accounts = AccountRepository(db, clock=clock)
        self._profiles = ProfileRepository(db)

    def _attempt(self, action: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
        try:
            return Outcome(value=fn(*args, **kwargs))
        except _FAILURES as e:
            logger.warning(f"{action} failed: {redact(str(e))}")
            return Outcome(error=e)

    # -- Accounts --------------------------------------------------------------

    def create_account_result(
        self, email: str, password: str, role: Union[AccountRole, str]
    ) -> Outcome[Account]:
        return self._attempt("create_account", self._create_account, email, password, role)

    def _create_account(self, email: str, password: str, role: Union[AccountRole, str]) -> Account:
        normalized = validate_email(email)
        validate_password(password)
        return self._accounts.create(normalized, password, validate_role(role))

    def create_account(self, email: str, password: str, role: Union[AccountRole, str]) -> int:
        """New account id, or -1 (duplicate email, invalid input, storage failure)."""
        outcome = self.create_account_result(email, password, role)
        return outcome.value.account_id if outcome.ok else -1

    def email_exists(self, email: Optional[str]) -> bool:
        return self._attempt("email_exists", self._accounts.email_exists, email).unwrap_or(False)

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Optional[Account]:
        return self._attempt("authenticate", self._accounts.authenticate, email, password).unwrap_or(None)

    def update_password(self, email: Optional[str], new_password: str) -> bool:
        def _update() -> bool:
            validate_password(new_password)
            return self._accounts.update_password(email, new_password)
        return self._attempt("update_password", _update).unwrap_or(False)

    def count_accounts(self) -> int:
        return self._attempt("count_accounts", self._accounts.count).unwrap_or(0)

    def list_accounts(self) -> list[Account]:
        return self._attempt("list_accounts", self._accounts.list_all).unwrap_or([])

    def get_account(self, account_id: int) -> Optional[Account]:
        return self._attempt("get_account", self._accounts.get_by_id, account_id).unwrap_or(None)

    # -- Profiles --------------------------------------------------------------

    def insert_passenger_profile(self, account_id: int, **fields: Any) -> bool:
        def _insert() -> PassengerProfile:
            profile = self._passenger_profile(account_id, fields)
            return self._profiles.insert_passenger(profile)
        return self._attempt("insert_passenger_profile", _insert).ok

    def insert_operator_profile(self, account_id: int, **fields: Any) -> bool:
        def _insert() -> OperatorProfile:
            profile = self._operator_profile(account_id, fields)
            return self._profiles.insert_operator(profile)
        return self._attempt("insert_operator_profile", _insert).ok

    def get_passenger_profile(self, account_id: int) -> Optional[ProfileWithAccount]:
        return self._attempt(
            "get_passenger_profile", self._profiles.get_passenger, account_id
        ).unwrap_or(None)

    def get_operator_profile(self, account_id: int) -> Optional[ProfileWithAccount]:
        return self._attempt(
            "get_operator_profile", self._profiles.get_operator, account_id
        ).unwrap_or(None)

    @staticmethod
    def _build_profile(profile_cls: type, account_id: int, fields: dict[str, Any]) -> Profile:
        """Construct ``profile_cls``; a missing or unknown field is a ``ValidationError``."""
        try:
            return profile_cls(account_id=account_id, **fields)
        except TypeError as e:
            raise ValidationError("profile", str(e)) from None

    @classmethod
    def _passenger_profile(cls, account_id: int, fields: dict[str, Any]) -> PassengerProfile:
        return cls._build_profile(PassengerProfile, account_id, fields)

    @classmethod
    def _operator_profile(cls, account_id: int, fields: dict[str, Any]) -> OperatorProfile:
        fields = dict(fields)
        fields["years_experience"] = parse_years_experience(fields.get("years_experience"))
        return cls._build_profile(OperatorProfile, account_id, fields)

    # -- Registration (account + profile in one unit of work) ------------------

    def register_passenger_result(self, email: str, password: str, **fields: Any) -> Outcome[int]:
        return self._attempt(
            "register_passenger", self._register, email, password,
            AccountRole.PASSENGER,
            lambda account_id: self._passenger_profile(account_id, fields),
        )

    def register_operator_result(self, email: str, password: str, **fields: Any) -> Outcome[int]:
        return self._attempt(
            "register_operator", self._register, email, password,
            AccountRole.BUS_OPERATOR,
            lambda account_id: self._operator_profile(account_id, fields),
        )

    def register_passenger(self, email: str, password: str, **fields: Any) -> int:
        """Account id of the new passenger, or -1; on failure nothing is stored."""
        return self.register_passenger_result(email, password, **fields).unwrap_or(-1)

    def register_operator(self, email: str, password: str, **fields: Any) -> int:
        """Account id of the new operator, or -1; on failure nothing is stored."""
        return self.register_operator_result(email, password, **fields).unwrap_or(-1)

    @retry_on_locked()
    def _register(
        self,
        email: str,
        password: str,
        role: AccountRole,
        build_profile: Callable[[int], Any],
    ) -> int:
        normalized = validate_email(email)
        validate_password(password)
        with self._db.transaction() as conn:
            account = self._accounts.create(normalized, password, role, conn=conn)
            profile = build_profile(account.account_id)
            if role is AccountRole.BUS_OPERATOR:
                self._profiles.insert_operator(profile, conn=conn)
            else:
                self._profiles.insert_passenger(profile, conn=conn)
        return account.account_id

    # -- Diagnostics -----------------------------------------------------------

    def profile_incomplete(self, account_id: int) -> bool:
        """True for an existing account that has no profile row for its role yet."""
        account = self.get_account(account_id)
        if account is None:
            return False
        if account.is_operator:
            return self.get_operator_profile(account_id) is None
        return self.get_passenger_profile(account_id) is None
