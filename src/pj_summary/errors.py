"""Exceptions raised by the summary and snapshot subsystem."""

from typing import Any


class SummaryError(Exception):
    """Base exception for summary errors."""

    pass


class InvalidRangeError(SummaryError, ValueError):
    """Requested period starts after it ends.

    Callers map this to a client error (HTTP 400), never a server fault.
    """

    pass


class InvalidDateError(SummaryError, ValueError):
    """A caller-supplied date is not a valid DD/MM/YYYY date."""

    pass


class StorageError(SummaryError):
    """Storage API request failed."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class StorageRateLimitError(StorageError):
    """Storage API rate limit exceeded."""

    pass
