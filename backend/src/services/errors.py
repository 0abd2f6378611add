"""
Error types raised by the scheduling services.

A busy slot is never an error: conflicts are returned as a ConflictReport.
Only malformed input, missing entities and infrastructure failures raise.
"""


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class ValidationFailure(SchedulingError, ValueError):
    """
    Malformed input (non-positive duration, end before start, range too long).

    Raised before the repository is touched.
    """


class NotFound(SchedulingError):
    """Unknown provider or appointment."""


class RepositoryUnavailable(SchedulingError):
    """
    The schedule repository could not complete the operation.

    Raised after bounded retries of a transient failure, or when a
    caller-supplied timeout expires. Callers may retry the request.
    """
