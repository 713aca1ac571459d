"""Exceptions for retry operations."""

from codemend.models import DetectedError


class RecoveryError(Exception):
    """Base exception for all retry and recovery operations."""


class RetryExhaustedError(RecoveryError):
    """Raised when a retried call fails for good.

    Carries every classified failure so callers can report them.
    """

    def __init__(self, errors: list[DetectedError], last_error: BaseException):
        self.errors = list(errors)
        self.last_error = last_error
        attempts = len(self.errors)
        super().__init__(
            f"Call failed after {attempts} attempt(s): {type(last_error).__name__}: {last_error}"
        )
