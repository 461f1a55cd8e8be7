"""Account domain model: an authenticatable identity with a role."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class AccountRole(str, Enum):
    PASSENGER = "passenger"
    BUS_OPERATOR = "bus_operator"


@dataclass
class Account:
    """One row of the ``users`` table."""

    email: str
    role: AccountRole = AccountRole.PASSENGER
    account_id: Optional[int] = None
    password_hash: str = field(default="", repr=False)
    created_at: str = ""
    is_verified: bool = False

    @property
    def is_operator(self) -> bool:
        return self.role is AccountRole.BUS_OPERATOR

    def to_dict(self) -> dict[str, Any]:
        """Public view of the account; the password hash is never included."""
        return {
            "account_id": self.account_id,
            "email": self.email,
            "role": self.role.value,
            "created_at": self.created_at,
            "is_verified": self.is_verified,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        return cls(
            account_id=row["account_id"],
            email=row["email"],
            role=AccountRole(row["role"]),
            password_hash=row.get("password", ""),
            created_at=row.get("created_at", ""),
            is_verified=bool(row.get("is_verified", 0)),
        )
