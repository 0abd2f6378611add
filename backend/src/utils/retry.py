"""
Helpers for recognising and retrying transient database failures.

Only failures that are safe to retry are treated as transient: serialization
failures, deadlocks, lock waits, cancelled statements (timeouts) and dropped
connections. Everything else propagates immediately.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE codes that indicate contention rather than a bug
TRANSIENT_PGCODES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available (lock_timeout / NOWAIT)
    "57014",  # query_canceled (statement_timeout)
}


def is_transient_db_error(error: BaseException) -> bool:
    """Check if a database error is worth retrying."""
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True
    if not isinstance(error, OperationalError):
        return False

    pgcode = getattr(getattr(error, "orig", None), "pgcode", None)
    if pgcode in TRANSIENT_PGCODES:
        return True

    # SQLite reports writer contention through the message only
    return "database is locked" in str(getattr(error, "orig", error)).lower()


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ..."""
    return base_delay * (2 ** attempt)


def call_with_retries(
    operation: Callable[[], T],
    max_retries: int,
    base_delay: float,
    description: str,
    on_failure: Optional[Callable[[], None]] = None,
) -> T:
    """
    Run an operation, retrying transient database failures with backoff.

    Args:
        operation: Zero-argument callable to run
        max_retries: Number of retries after the first attempt
        base_delay: Base delay in seconds (exponential backoff)
        description: Operation name for log messages
        on_failure: Called after every failed attempt (e.g. session rollback)

    Returns:
        The operation's return value

    Raises:
        The last transient error once retries are exhausted, or any
        non-transient error immediately.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except (OperationalError, DBAPIError) as e:
            if on_failure is not None:
                on_failure()
            if not is_transient_db_error(e) or attempt >= max_retries:
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                f"Transient database failure in {description} (attempt {attempt + 1}/{max_retries + 1}), "
                f"retrying in {delay:.2f} seconds: {e}"
            )
            time.sleep(delay)
            attempt += 1
