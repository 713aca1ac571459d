"""Retry eligibility, exponential backoff and the retry loop for model calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from codemend.models import DetectedError, ErrorCategory, ErrorSeverity
from codemend.recovery.classifier import classify_error
from codemend.recovery.exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000

RETRYABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.CONNECTIVITY,
        ErrorCategory.TIMEOUT,
        ErrorCategory.REMOTE_SERVICE,
    }
)


def should_retry(error: DetectedError, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> bool:
    """Return True if the failed call may be attempted again.

    Only transient categories below CRITICAL severity are retried, and only
    while the failing attempt number is below ``max_attempts``.
    """
    if error.context.attempt >= max_attempts:
        return False
    if error.severity == ErrorSeverity.CRITICAL:
        return False
    return error.category in RETRYABLE_CATEGORIES


def backoff_delay_ms(attempt: int, base_ms: int = DEFAULT_BASE_DELAY_MS) -> int:
    """Delay before retrying after failed ``attempt`` (1-based): base * 2^(attempt-1)."""
    return base_ms * (2 ** (max(1, attempt) - 1))


@dataclass
class RetryPolicy:
    """How often and how patiently a model call is retried."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS

    def delay_ms(self, attempt: int) -> int:
        return backoff_delay_ms(attempt, self.base_delay_ms)


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    on_retry: Callable[[DetectedError, int], None] | None = None,
    model_name: str | None = None,
) -> tuple[T, list[DetectedError]]:
    """Await ``fn`` until it succeeds or a failure is not retryable.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt limit and backoff base. Defaults to RetryPolicy().
        sleep: Awaitable sleep, injectable for tests.
        on_retry: Called with the classified error and the delay in ms
            before each retry.
        model_name: Recorded in each DetectedError's context.

    Returns:
        The successful value and the errors of earlier failed attempts,
        each marked resolved by auto-retry.

    Raises:
        RetryExhaustedError: With every classified error once a failure is
            not retryable or attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    errors: list[DetectedError] = []
    attempt = 1
    while True:
        try:
            value = await fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = classify_error(exc, attempt=attempt, model_name=model_name)
            errors.append(error)
            if not should_retry(error, policy.max_attempts):
                logger.error("Model call failed on attempt %d: %s", attempt, error.message)
                raise RetryExhaustedError(errors, exc) from exc
            delay = policy.delay_ms(attempt)
            logger.warning(
                "Model call attempt %d failed (%s); retrying in %d ms",
                attempt,
                error.category.value,
                delay,
            )
            if on_retry is not None:
                on_retry(error, delay)
            await sleep(delay / 1000)
            attempt += 1
            continue

        for error in errors:
            error.resolve("auto_retry", f"Succeeded on attempt {attempt}")
        return value, errors
