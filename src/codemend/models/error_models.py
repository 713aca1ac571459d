"""Models for classified failures."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorCategory(str, Enum):
    """Failure category assigned by the error classifier."""

    SYNTAX = "syntax"
    RUNTIME = "runtime"
    TOOL_EXECUTION = "tool_execution"
    REMOTE_SERVICE = "remote_service"
    CONNECTIVITY = "connectivity"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """How badly a failure degrades the run."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ResolutionMethod = Literal["auto_retry", "auto_fix", "manual_fix", "user_intervention"]


class ErrorContext(BaseModel):
    """Where a failure happened."""

    tool_name: str | None = None
    attempt: int = 1
    model_name: str | None = None


class ErrorResolution(BaseModel):
    """How a failure was resolved."""

    method: ResolutionMethod
    timestamp: datetime = Field(default_factory=datetime.now)
    notes: str = ""


class DetectedError(BaseModel):
    """A classified failure. Mutated only through resolve()."""

    model_config = ConfigDict(frozen=False)

    id: str = Field(default_factory=lambda: f"error_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=datetime.now)
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    context: ErrorContext = Field(default_factory=ErrorContext)
    suggested_fix: str | None = None
    resolved: bool = False
    resolution: ErrorResolution | None = None

    def resolve(self, method: ResolutionMethod, notes: str = "") -> None:
        """Mark this error as resolved."""
        self.resolved = True
        self.resolution = ErrorResolution(method=method, notes=notes)
