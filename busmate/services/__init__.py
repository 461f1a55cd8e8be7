"""Services module"""
from .account_service import AccountService, Outcome
from .password_reset import PasswordResetService

__all__ = ["AccountService", "Outcome", "PasswordResetService"]
