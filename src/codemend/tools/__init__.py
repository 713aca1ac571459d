"""Tool catalog, handlers and executor."""

from codemend.tools.autofix import AutoFix, match_file_name, suggest_fix
from codemend.tools.exceptions import (
    LineRangeError,
    ProtectedPathError,
    TaskNotFoundError,
    ToolArgumentError,
    ToolError,
    ToolFileNotFoundError,
    UnknownToolError,
)
from codemend.tools.executor import DEFAULT_HANDLERS, ToolExecutor, plan_batches
from codemend.tools.protected import PROTECTED_FRAGMENTS, is_protected_path
from codemend.tools.schemas import (
    MUTATING_TOOLS,
    READ_ONLY_TOOLS,
    TOOL_NAMES,
    TOOL_SCHEMAS,
    is_read_only,
)
from codemend.tools.workspace import ToolContext, WorkingSet

__all__ = [
    "DEFAULT_HANDLERS",
    "MUTATING_TOOLS",
    "PROTECTED_FRAGMENTS",
    "READ_ONLY_TOOLS",
    "TOOL_NAMES",
    "TOOL_SCHEMAS",
    "AutoFix",
    "LineRangeError",
    "ProtectedPathError",
    "TaskNotFoundError",
    "ToolArgumentError",
    "ToolContext",
    "ToolError",
    "ToolExecutor",
    "ToolFileNotFoundError",
    "UnknownToolError",
    "WorkingSet",
    "is_protected_path",
    "is_read_only",
    "match_file_name",
    "plan_batches",
    "suggest_fix",
]
