"""Ordered pattern classification of raised errors.

Classification runs in two passes over the same ordered rule list: first
against the exception's class hierarchy names, then against its message.
Class names are more reliable than messages, which can quote arbitrary
file names or model output.
"""

import re
from dataclasses import dataclass

from codemend.models import DetectedError, ErrorCategory, ErrorContext, ErrorSeverity


@dataclass(frozen=True)
class ErrorPattern:
    category: ErrorCategory
    severity: ErrorSeverity
    type_pattern: re.Pattern | None
    message_pattern: re.Pattern | None
    suggested_fix: str | None = None


def _rx(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


ERROR_PATTERNS: list[ErrorPattern] = [
    ErrorPattern(
        ErrorCategory.RUNTIME,
        ErrorSeverity.CRITICAL,
        _rx(r"^(MemoryError|RecursionError)$"),
        _rx(r"out of memory|maximum recursion depth"),
        "Reduce the size of the request or the project context.",
    ),
    ErrorPattern(
        ErrorCategory.TIMEOUT,
        ErrorSeverity.MEDIUM,
        _rx(r"Timeout"),
        _rx(r"timed? ?out|timeout|deadline exceeded"),
        "Retry the request; consider a smaller context.",
    ),
    ErrorPattern(
        ErrorCategory.CONNECTIVITY,
        ErrorSeverity.MEDIUM,
        _rx(r"Connection"),
        _rx(r"network.*error|connection (error|refused|reset)|failed to fetch|ECONNREFUSED"),
        "Check network connectivity and the service base URL.",
    ),
    ErrorPattern(
        ErrorCategory.PERMISSION,
        ErrorSeverity.HIGH,
        _rx(r"Permission|Protected|Authentication"),
        _rx(r"permission denied|access denied|unauthorized|forbidden|\b40[13]\b"),
        "Check credentials; protected paths cannot be modified.",
    ),
    ErrorPattern(
        ErrorCategory.VALIDATION,
        ErrorSeverity.HIGH,
        _rx(r"^(BadRequestError|UnprocessableEntityError|NotFoundError)$"),
        None,
        "The service rejected the request; check the model name and parameters.",
    ),
    ErrorPattern(
        ErrorCategory.REMOTE_SERVICE,
        ErrorSeverity.MEDIUM,
        _rx(r"RateLimit"),
        _rx(r"rate limit|\b429\b|too many requests"),
        "Wait before retrying.",
    ),
    ErrorPattern(
        ErrorCategory.REMOTE_SERVICE,
        ErrorSeverity.HIGH,
        _rx(r"^(APIStatusError|APIError|InternalServerError|ServiceUnavailableError|OverloadedError)$"),
        _rx(r"api.*error|overloaded|service unavailable|\b50[0234]\b"),
        "The model service failed; retry later.",
    ),
    ErrorPattern(
        ErrorCategory.SYNTAX,
        ErrorSeverity.HIGH,
        _rx(r"^(SyntaxError|JSONDecodeError|ArgumentRepairError)$"),
        _rx(r"syntax ?error|unexpected token|unexpected end of input|invalid json|could not parse"),
        "Emit well-formed JSON arguments.",
    ),
    ErrorPattern(
        ErrorCategory.VALIDATION,
        ErrorSeverity.LOW,
        _rx(r"Validation|ToolArgument"),
        _rx(r"validation.*(error|failed)|invalid.*parameter|missing required|field required"),
        "Provide every required argument with the documented type.",
    ),
    ErrorPattern(
        ErrorCategory.TOOL_EXECUTION,
        ErrorSeverity.MEDIUM,
        _rx(r"^ToolError$"),
        _rx(r"tool execution failed|unknown tool|file not found|tool not found"),
        "Use list_files to check names before retrying the tool.",
    ),
    ErrorPattern(
        ErrorCategory.RUNTIME,
        ErrorSeverity.HIGH,
        _rx(r"^(TypeError|NameError|AttributeError|KeyError|IndexError|ValueError|RuntimeError)$"),
        _rx(r"is not defined|cannot read propert|has no attribute|not subscriptable"),
        None,
    ),
]


def _type_names(exc: BaseException) -> list[str]:
    return [cls.__name__ for cls in type(exc).__mro__]


def match_pattern(exc: BaseException) -> ErrorPattern | None:
    """Return the first rule matching the exception, or None."""
    names = _type_names(exc)
    for pattern in ERROR_PATTERNS:
        if pattern.type_pattern is not None and any(
            pattern.type_pattern.search(name) for name in names
        ):
            return pattern
    message = str(exc)
    for pattern in ERROR_PATTERNS:
        if pattern.message_pattern is not None and pattern.message_pattern.search(message):
            return pattern
    return None


def classify_error(
    exc: BaseException,
    tool_name: str | None = None,
    attempt: int = 1,
    model_name: str | None = None,
) -> DetectedError:
    """Classify a raised error into a DetectedError.

    Args:
        exc: The raised exception.
        tool_name: Tool that failed, if any.
        attempt: 1-based attempt number of the failing call.
        model_name: Model that was being called, if any.

    Returns:
        An unresolved DetectedError. Unmatched errors are UNKNOWN/MEDIUM.
    """
    pattern = match_pattern(exc)
    context = ErrorContext(tool_name=tool_name, attempt=attempt, model_name=model_name)
    message = f"{type(exc).__name__}: {exc}"
    if pattern is None:
        return DetectedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            message=message,
            context=context,
        )
    return DetectedError(
        category=pattern.category,
        severity=pattern.severity,
        message=message,
        context=context,
        suggested_fix=pattern.suggested_fix,
    )
