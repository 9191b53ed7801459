"""
Application-wide constants.
Centralizes magic numbers used by the scheduling engine.
"""

# Scheduling grid
DEFAULT_SLOT_INTERVAL_MINUTES = 30  # Candidate start times are spaced by this
MINUTES_IN_DAY = 24 * 60

# Availability classification
PARTIAL_OCCUPANCY_THRESHOLD = 0.7  # booked / total at or above this => "partial"

# Recurrence limits
MAX_RECURRENCE_OCCURRENCES = 52  # Upper bound when a series ends on a date
DEFAULT_CUSTOM_INTERVAL_DAYS = 7

# Validation limits
MAX_NOTES_LENGTH = 1000
MAX_CLIENT_NAME_LENGTH = 120
MIN_SERVICE_DURATION_MINUTES = 5
MAX_SERVICE_DURATION_MINUTES = 12 * 60

# Postgres error codes raised when a conflicting active appointment exists
UNIQUE_VIOLATION_CODE = "23505"
EXCLUSION_VIOLATION_CODE = "23P01"
