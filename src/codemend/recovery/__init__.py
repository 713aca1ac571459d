"""Error classification and retry/backoff policy."""

from codemend.recovery.classifier import ERROR_PATTERNS, ErrorPattern, classify_error
from codemend.recovery.exceptions import RecoveryError, RetryExhaustedError
from codemend.recovery.retry import (
    RETRYABLE_CATEGORIES,
    RetryPolicy,
    backoff_delay_ms,
    call_with_retry,
    should_retry,
)

__all__ = [
    "ERROR_PATTERNS",
    "RETRYABLE_CATEGORIES",
    "ErrorPattern",
    "RecoveryError",
    "RetryExhaustedError",
    "RetryPolicy",
    "backoff_delay_ms",
    "call_with_retry",
    "classify_error",
    "should_retry",
]
