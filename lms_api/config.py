"""Application configuration and constants."""
import logging
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_log_level(name: str, default: int) -> int:
    """Parse logging level name (e.g. ``DEBUG``) from environment variable."""
    raw = os.environ.get(name)
    if not raw:
        return default
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else default


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'lms.db'}"
)

# Authentication
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "CHANGE_ME_IN_PRODUCTION_USE_openssl_rand_hex_32"
)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _parse_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60)

# Attempt timing
SUBMISSION_GRACE_SECONDS = _parse_int_env("SUBMISSION_GRACE_SECONDS", 0)
STALE_ATTEMPT_GRACE_MINUTES = _parse_int_env("STALE_ATTEMPT_GRACE_MINUTES", 5)
EXPIRED_ATTEMPTS_CLEANUP_INTERVAL_SECONDS = _parse_int_env(
    "EXPIRED_ATTEMPTS_CLEANUP_INTERVAL_SECONDS", 0
)

# Results pagination
RESULTS_PAGE_SIZE = _parse_int_env("RESULTS_PAGE_SIZE", 10)
RESULTS_MAX_PAGE_SIZE = _parse_int_env("RESULTS_MAX_PAGE_SIZE", 100)

# Test defaults
DEFAULT_PASSING_SCORE = 60.0

# Localization and logging
DEFAULT_LOCALE = os.environ.get("DEFAULT_LOCALE", "en")
LOG_LEVEL = _parse_log_level("LOG_LEVEL", logging.INFO)
