"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env (when run from src)
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def _get_bool(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment ("1", "true", "yes", "on")."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Configuration constants with defaults
# These match the environment variables defined in .env.example
def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/clinic_booking_dev"
    )

DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Scheduling
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/La_Paz")
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "10"))
BOOK_ADVANCE_TIMEOUT_MINUTES = int(os.getenv("BOOK_ADVANCE_TIMEOUT_MINUTES", "0"))

# Same-day reservation check: when enabled, only month and day are compared
# (the legacy booking page never compared the year)
RESERVATION_CHECK_IGNORES_YEAR = _get_bool("RESERVATION_CHECK_IGNORES_YEAR", False)

# Date the booking conflict guard checks for an existing reservation:
# "today" (the clinic's current date, as the legacy booking page did) or
# "appointment" (the date being booked)
RESERVATION_CHECK_DATE = os.getenv("RESERVATION_CHECK_DATE", "today").strip().lower()
if RESERVATION_CHECK_DATE not in ("today", "appointment"):
    raise ValueError(f"RESERVATION_CHECK_DATE must be 'today' or 'appointment', got {RESERVATION_CHECK_DATE!r}")

# Human verification (Cloudflare Turnstile)
CAPTCHA_ENABLED = _get_bool("CAPTCHA_ENABLED", False)
TURNSTILE_SECRET_KEY = os.getenv("TURNSTILE_SECRET_KEY", "")
TURNSTILE_VERIFY_URL = os.getenv(
    "TURNSTILE_VERIFY_URL",
    "https://challenges.cloudflare.com/turnstile/v0/siteverify"
)
TURNSTILE_TIMEOUT_SECONDS = float(os.getenv("TURNSTILE_TIMEOUT_SECONDS", "10"))
