"""Exceptions for orchestrator operations.

Note: Names chosen to avoid collisions with stdlib and framework exceptions.
"""


class OrchestratorError(Exception):
    """Base exception for all orchestrator operations."""


class GraphBuildError(OrchestratorError):
    """Raised when graph construction fails."""


class RequestValidationError(OrchestratorError):
    """Raised when a request cannot be run at all (missing model, empty message)."""


class OperationCancelledError(OrchestratorError):
    """Raised internally when the cancellation token fires during a model call."""
