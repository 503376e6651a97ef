"""
Exception hierarchy for the currency tracker.
"""


class CurrencyTrackerError(Exception):
    """Base class for currency tracker errors."""

    pass


class RateSourceError(CurrencyTrackerError):
    """Raised when a rate could not be fetched or decoded."""

    pass


class PersistenceError(CurrencyTrackerError):
    """Raised when a persisted slot cannot be read or written."""

    pass


class ValidationError(CurrencyTrackerError, ValueError):
    """Raised when user input is rejected before any side effect."""

    pass
