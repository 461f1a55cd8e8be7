from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

password_hasher = PasswordHasher(encoding="utf-8")

# Verified against when the email is unknown, so a miss costs as much as a
# wrong password.
_DUMMY_HASH = None


def make_password(password: str) -> str:
    """
    Hash a plain-text password using Argon2.

    Args:
        password (str): The plain-text password to be hashed.

    Returns:
        str: The Argon2 hash (salt and parameters embedded).
    """
    return password_hasher.hash(password)


def check_password(password: str, actual_password: str) -> bool:
    """
    Verify a plain-text password against a stored Argon2 hash.

    Args:
        password (str): The plain-text password to check.
        actual_password (str): The stored Argon2 hash of the password.

    Returns:
        bool: True if the password matches the hash, False otherwise.
        A stored value that is not an Argon2 hash never matches.
    """
    try:
        return password_hasher.verify(actual_password, password)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(actual_password: str) -> bool:
    """True when the hash was made with parameters other than the current ones."""
    try:
        return password_hasher.check_needs_rehash(actual_password)
    except InvalidHashError:
        return True


def burn_verification(password: str) -> None:
    """Run one throwaway verification; used for lookups that found no row."""
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = password_hasher.hash("busmate-placeholder")
    check_password(password, _DUMMY_HASH)
