"""
Custom exception classes for the scheduling engine.

Configuration, validation and conflict outcomes are expected and are
usually turned into typed results by the services; only persistence
failures are meant to interrupt a flow.
"""


class SchedulingError(Exception):
    """Base exception for scheduling operations."""

    kind = "error"

    def __init__(self, message: str = "", reason_code: str = ""):
        super().__init__(message)
        self.reason = message
        self.reason_code = reason_code or self.kind


class ConfigurationError(SchedulingError):
    """Raised when no (or inconsistent) hours are configured for a date."""

    kind = "configuration"


class ValidationError(SchedulingError):
    """Raised when a requested date/time fails the resolver or containment check."""

    kind = "validation"


class ConflictError(SchedulingError):
    """Raised when a requested slot collides with an existing appointment."""

    kind = "conflict"


class SlotUnavailableError(ConflictError):
    """Raised by the store when the atomic write finds a conflicting active row."""

    pass


class PersistenceError(SchedulingError):
    """Storage failure unrelated to business rules. Safe to retry."""

    kind = "persistence"
    retryable = True


class AppointmentNotFoundError(PersistenceError):
    """Raised when an appointment is not found."""

    retryable = False


class ServiceNotFoundError(PersistenceError):
    """Raised when a service is not found or inactive."""

    retryable = False


class NotificationError(SchedulingError):
    """Raised by notification transports. Never surfaced to booking callers."""

    kind = "notification"


def error_for_kind(kind: str) -> type:
    """Exception class matching a rejection kind (configuration, validation, conflict)."""
    for error_class in (ConfigurationError, ValidationError, ConflictError):
        if error_class.kind == kind:
            return error_class
    return SchedulingError
