"""Input checks applied before anything is written to the store."""

from __future__ import annotations

import re
from typing import Any, Optional, Union

from busmate.errors import ValidationError
from busmate.models.account import AccountRole

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9+._%\-]{1,256}@[a-zA-Z0-9][a-zA-Z0-9\-]{0,64}(\.[a-zA-Z0-9][a-zA-Z0-9\-]{0,25})+$"
)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def validate_email(email: Optional[str]) -> str:
    """Return the normalised address or raise ``ValidationError``."""
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationError("email", "Email is required")
    if not _EMAIL_RE.match(normalized):
        raise ValidationError("email", "Please enter a valid email address")
    return normalized


def validate_password(password: Optional[str]) -> str:
    if not password:
        raise ValidationError("password", "Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return password


def validate_role(role: Union[AccountRole, str]) -> AccountRole:
    try:
        return AccountRole(role)
    except ValueError:
        raise ValidationError("role", f"Unknown account role: {role!r}") from None


def parse_years_experience(value: Any) -> int:
    """Free-text years of experience -> int.

    Blank or unparsable text counts as 0.  A negative number raises
    ``ValidationError``.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        years = value
    else:
        try:
            years = int(str(value).strip())
        except ValueError:
            return 0
    if years < 0:
        raise ValidationError("years_experience", f"Years of experience cannot be negative, got {years}")
    return years
