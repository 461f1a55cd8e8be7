"""Domain models for the BusMate account store."""

from busmate.models.account import Account, AccountRole
from busmate.models.profile import (
    OperatorProfile,
    PassengerProfile,
    Profile,
    ProfileWithAccount,
)

__all__ = [
    "Account", "AccountRole",
    "PassengerProfile", "OperatorProfile", "Profile", "ProfileWithAccount",
]
