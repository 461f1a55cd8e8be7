"""
Central configuration loader.
Reads from environment variables (via .env) with sensible local defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from busmate.db.schema import DATABASE_NAME, SCHEMA_VERSION


# ---------------------------------------------------------------------------
# Load .env from repo root (if present)
# ---------------------------------------------------------------------------
_REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_REPO_ROOT / ".env")


def _get(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    val = os.getenv(key, default)
    if required and not val:
        raise EnvironmentError(f"Missing required environment variable: {key}")
    return val


def _get_int(key: str, default: int) -> int:
    raw = _get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise EnvironmentError(f"{key} must be an integer, got {raw!r}") from exc


def _get_float(key: str, default: float) -> float:
    raw = _get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise EnvironmentError(f"{key} must be a number, got {raw!r}") from exc


# ---------------------------------------------------------------------------
# Store config
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StoreConfig:
    db_path: Path
    db_version: int
    lock_retries: int
    lock_backoff: float
    lock_timeout: float
    otp_ttl_seconds: int
    otp_max_attempts: int
    log_level: str


def get_store_config() -> StoreConfig:
    raw_path = _get("BUSMATE_DB_PATH")
    return StoreConfig(
        db_path=Path(raw_path) if raw_path else get_repo_root() / "data" / DATABASE_NAME,
        db_version=_get_int("BUSMATE_DB_VERSION", SCHEMA_VERSION),
        lock_retries=get_lock_retries(),
        lock_backoff=get_lock_backoff(),
        lock_timeout=get_lock_timeout(),
        otp_ttl_seconds=_get_int("BUSMATE_OTP_TTL_SECONDS", 300),
        otp_max_attempts=_get_int("BUSMATE_OTP_MAX_ATTEMPTS", 5),
        log_level=_get("BUSMATE_LOG_LEVEL", default="INFO"),  # type: ignore[arg-type]
    )


# Lock settings, read one at a time by the storage layer.
def get_lock_retries() -> int:
    return _get_int("BUSMATE_DB_RETRIES", 3)


def get_lock_backoff() -> float:
    return _get_float("BUSMATE_DB_BACKOFF", 0.05)


def get_lock_timeout() -> float:
    return _get_float("BUSMATE_DB_TIMEOUT", 5.0)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
def get_repo_root() -> Path:
    return _REPO_ROOT


def get_db_path() -> Path:
    return get_store_config().db_path
