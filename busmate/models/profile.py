"""Role-specific profile models and the joined read view."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Optional, Union

from busmate.models.account import AccountRole


@dataclass
class PassengerProfile:
    account_id: int
    full_name: str
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    blood_type: Optional[str] = None
    passenger_id: Optional[int] = None

    TABLE = "passengers"
    KEY = "passenger_id"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PassengerProfile":
        return cls(**{f.name: row.get(f.name) for f in fields(cls)})


@dataclass
class OperatorProfile:
    account_id: int
    full_name: str
    license_number: str
    vehicle_registration: str
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    route_number: Optional[str] = None
    years_experience: int = 0
    vehicle_type: Optional[str] = None
    operating_company: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    operator_id: Optional[int] = None

    TABLE = "bus_operators"
    KEY = "operator_id"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "OperatorProfile":
        values = {f.name: row.get(f.name) for f in fields(cls)}
        values["years_experience"] = values["years_experience"] or 0
        return cls(**values)


Profile = Union[PassengerProfile, OperatorProfile]


def profile_columns(profile: Profile) -> dict[str, Any]:
    """Column/value pairs for an INSERT, without the surrogate key."""
    values = asdict(profile)
    values.pop(profile.KEY, None)
    return values


@dataclass
class ProfileWithAccount:
    """A profile joined with its owning account's email and role."""

    profile: Profile
    email: str
    role: AccountRole

    @property
    def account_id(self) -> int:
        return self.profile.account_id

    @property
    def full_name(self) -> str:
        return self.profile.full_name

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self.profile)
        d["email"] = self.email
        d["role"] = self.role.value
        return d
