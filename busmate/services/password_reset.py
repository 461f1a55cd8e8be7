"""Forgot-password flow: one-time numeric codes, then a password update."""

from __future__ import annotations

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from busmate.services.account_service import AccountService
from busmate.utils.redact import mask_email
from busmate.validators import normalize_email

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def generate_code() -> str:
    """Six-digit code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class _PendingCode:
    code: str
    expires_at: float
    attempts: int = 0


class PasswordResetService:
    """
    Issues and checks one-time codes for resetting a password.

    Codes live in memory only, one per email; requesting a new code replaces
    the old one.  Delivery of the code (SMS, mail) is up to the caller.
    """

    def __init__(
        self,
        accounts: AccountService,
        ttl_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        from busmate.config import get_store_config
        cfg = get_store_config()
        self._accounts = accounts
        self._ttl = ttl_seconds if ttl_seconds is not None else cfg.otp_ttl_seconds
        self._max_attempts = max_attempts if max_attempts is not None else cfg.otp_max_attempts
        self._clock = clock
        self._pending: dict[str, _PendingCode] = {}
        self._lock = threading.Lock()

    def request_code(self, email: Optional[str]) -> Optional[str]:
        """Issue a code for a registered email; ``None`` if no such account."""
        normalized = normalize_email(email)
        if not self._accounts.email_exists(normalized):
            logger.info(f"Reset code refused for unknown address {mask_email(normalized)}")
            return None
        code = generate_code()
        with self._lock:
            self._pending[normalized] = _PendingCode(code, self._clock() + self._ttl)
        logger.info(f"Reset code issued for {mask_email(normalized)}")
        return code

    def verify_code(self, email: Optional[str], code: Optional[str]) -> bool:
        normalized = normalize_email(email)
        entered = (code or "").strip()
        with self._lock:
            pending = self._pending.get(normalized)
            if pending is None:
                return False
            if self._clock() >= pending.expires_at:
                del self._pending[normalized]
                logger.info(f"Reset code expired for {mask_email(normalized)}")
                return False
            if len(entered) == CODE_LENGTH and hmac.compare_digest(entered, pending.code):
                return True
            pending.attempts += 1
            if pending.attempts >= self._max_attempts:
                del self._pending[normalized]
                logger.warning(f"Too many wrong reset codes for {mask_email(normalized)}")
            return False

    def reset_password(self, email: Optional[str], code: Optional[str], new_password: str) -> bool:
        """Set a new password when ``code`` is valid; the code is used up on success."""
        if not self.verify_code(email, code):
            return False
        normalized = normalize_email(email)
        if not self._accounts.update_password(normalized, new_password):
            return False
        with self._lock:
            self._pending.pop(normalized, None)
        return True

    def has_pending_code(self, email: Optional[str]) -> bool:
        with self._lock:
            return normalize_email(email) in self._pending
