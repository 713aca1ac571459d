"""Data models for codemend."""

from codemend.models.conversation_models import (
    DEFAULT_ROLES,
    MAX_HISTORY_ENTRIES,
    AgentRole,
    AppMode,
    ConversationTurn,
    LoopStatus,
    MessageRole,
    OrchestratorRequest,
    OrchestratorResult,
    ProjectSummary,
)
from codemend.models.error_models import (
    DetectedError,
    ErrorCategory,
    ErrorContext,
    ErrorResolution,
    ErrorSeverity,
)
from codemend.models.file_models import DiffKind, FileDiff, ProjectFile
from codemend.models.knowledge_models import (
    TAG_MARKER,
    KnowledgeEntry,
    KnowledgeScope,
    TodoItem,
    TodoStatus,
    normalize_tag,
)
from codemend.models.tool_models import (
    MAX_SEARCH_RESULTS,
    TOOL_ARGUMENT_MODELS,
    ToolArguments,
    ToolExecutionResult,
    ToolInvocation,
    ToolName,
)

__all__ = [
    "DEFAULT_ROLES",
    "MAX_HISTORY_ENTRIES",
    "MAX_SEARCH_RESULTS",
    "TAG_MARKER",
    "TOOL_ARGUMENT_MODELS",
    "AgentRole",
    "AppMode",
    "ConversationTurn",
    "DetectedError",
    "DiffKind",
    "ErrorCategory",
    "ErrorContext",
    "ErrorResolution",
    "ErrorSeverity",
    "FileDiff",
    "KnowledgeEntry",
    "KnowledgeScope",
    "LoopStatus",
    "MessageRole",
    "OrchestratorRequest",
    "OrchestratorResult",
    "ProjectFile",
    "ProjectSummary",
    "TodoItem",
    "TodoStatus",
    "ToolArguments",
    "ToolExecutionResult",
    "ToolInvocation",
    "ToolName",
    "normalize_tag",
]
