"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
import sys
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or "pytest" in sys.modules

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env at repository root
        pathlib.Path.cwd() / ".env",  # .env in current directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "sqlite:///./clinic_scheduler.db"
    )


DATABASE_URL = get_database_url()

# Repository calls (row locks, statements) are bounded by this many seconds
# unless the caller supplies its own timeout.
REPOSITORY_TIMEOUT_SECONDS = float(os.getenv("SCHEDULING_REPOSITORY_TIMEOUT_SECONDS", "5.0"))

# Transient database failures (serialization failure, lock wait, dropped connection)
RESERVE_MAX_RETRIES = int(os.getenv("SCHEDULING_RESERVE_MAX_RETRIES", "3"))
READ_MAX_RETRIES = int(os.getenv("SCHEDULING_READ_MAX_RETRIES", "2"))
RETRY_BASE_DELAY_SECONDS = float(os.getenv("SCHEDULING_RETRY_BASE_DELAY_SECONDS", "0.05"))

# Query ranges longer than this are rejected before touching the database
MAX_RANGE_DAYS = int(os.getenv("SCHEDULING_MAX_RANGE_DAYS", "93"))
NEXT_SLOT_MAX_DAYS_AHEAD = int(os.getenv("SCHEDULING_NEXT_SLOT_MAX_DAYS_AHEAD", "30"))

# Minutes kept free on each side of an existing appointment. Zero means
# back-to-back bookings are allowed.
BUFFER_MINUTES = int(os.getenv("SCHEDULING_BUFFER_MINUTES", "0"))

# Step of the day schedule grid view
SCHEDULE_GRID_MINUTES = int(os.getenv("SCHEDULING_GRID_MINUTES", "30"))
