"""Application constants and configuration values."""

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_REASON_LENGTH = 500  # Maximum length for time-off reasons
MAX_LABEL_LENGTH = 200  # Maximum length for appointment display labels

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# Appointment statuses
APPOINTMENT_STATUS_SCHEDULED = "scheduled"
APPOINTMENT_STATUS_CONFIRMED = "confirmed"
APPOINTMENT_STATUS_CHECKED_IN = "checked_in"
APPOINTMENT_STATUS_COMPLETED = "completed"
APPOINTMENT_STATUS_CANCELLED = "cancelled"
APPOINTMENT_STATUS_NO_SHOW = "no_show"

# Only these statuses occupy provider time and take part in conflict checks
ACTIVE_APPOINTMENT_STATUSES = (
    APPOINTMENT_STATUS_SCHEDULED,
    APPOINTMENT_STATUS_CONFIRMED,
    APPOINTMENT_STATUS_CHECKED_IN,
)

INACTIVE_APPOINTMENT_STATUSES = (
    APPOINTMENT_STATUS_COMPLETED,
    APPOINTMENT_STATUS_CANCELLED,
    APPOINTMENT_STATUS_NO_SHOW,
)

ALL_APPOINTMENT_STATUSES = ACTIVE_APPOINTMENT_STATUSES + INACTIVE_APPOINTMENT_STATUSES

# An appointment may never be longer than a full day. This also bounds how far
# back the repository looks for appointments that started before a query window.
MAX_APPOINTMENT_DURATION_MINUTES = 24 * 60

DEFAULT_PROVIDER_TIMEZONE = "UTC"
