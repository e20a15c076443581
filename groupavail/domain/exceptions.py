"""
Domain-specific exception hierarchy for the group availability engine.
"""


class AvailabilityError(Exception):
    """Base class for all application-level errors."""


class InvalidWindow(AvailabilityError, ValueError):
    """Raised when a time window or slot resolution is malformed."""


class InvalidStatus(AvailabilityError, ValueError):
    """Raised when a presence status is outside the known vocabulary."""


class StoreUnavailable(AvailabilityError):
    """Raised when the presence backend cannot be reached for a write."""


class AdapterUnavailable(AvailabilityError):
    """Raised when busy intervals cannot be fetched or parsed."""
