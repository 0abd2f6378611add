"""
Service layer for business logic.

This module contains service classes that encapsulate scheduling logic
shared across API endpoints.
"""

from .errors import SchedulingError, ValidationFailure, NotFound, RepositoryUnavailable
from .schedule_repository import ScheduleRepository
from .availability_service import AvailabilityService
from .conflict_service import ConflictService
from .booking_service import BookingCoordinator, ProviderLockRegistry, log_reservation_event
from .workload_service import WorkloadService
from .schedule_rule_service import ScheduleRuleService

__all__ = [
    "SchedulingError",
    "ValidationFailure",
    "NotFound",
    "RepositoryUnavailable",
    "ScheduleRepository",
    "AvailabilityService",
    "ConflictService",
    "BookingCoordinator",
    "ProviderLockRegistry",
    "log_reservation_event",
    "WorkloadService",
    "ScheduleRuleService",
]
