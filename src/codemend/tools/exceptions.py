"""Exceptions for tool execution.

Tool errors never abort the turn loop: the executor turns them into the
tool's output text so the model can correct itself on the next turn.
"""


class ToolError(Exception):
    """Base exception for all tool operations."""


class ToolFileNotFoundError(ToolError):
    """Raised when a tool targets a file that is not in the working view."""

    def __init__(self, file_name: str, available: list[str]):
        self.file_name = file_name
        self.available = list(available)
        listing = ", ".join(self.available) if self.available else "(no files)"
        super().__init__(f"File not found: {file_name}. Available files: {listing}")


class ProtectedPathError(ToolError):
    """Raised when a mutating tool targets a protected path."""

    def __init__(self, file_name: str, action: str):
        self.file_name = file_name
        self.action = action
        super().__init__(
            f"Permission denied: {action} on '{file_name}' was blocked "
            "because it is a protected path."
        )


class LineRangeError(ToolError):
    """Raised when a requested line range falls outside the file."""

    def __init__(self, file_name: str, start_line: int, end_line: int, total_lines: int):
        self.file_name = file_name
        self.start_line = start_line
        self.end_line = end_line
        self.total_lines = total_lines
        super().__init__(
            f"Line range {start_line}-{end_line} is out of range for {file_name} "
            f"({total_lines} lines)"
        )


class TaskNotFoundError(ToolError):
    """Raised when a task-list action references an unknown task id."""

    def __init__(self, task_id: str | None, available: list[str]):
        self.task_id = task_id
        self.available = list(available)
        listing = ", ".join(self.available) if self.available else "(empty task list)"
        super().__init__(f"Task not found: {task_id}. Known task ids: {listing}")


class ToolArgumentError(ToolError):
    """Raised when arguments are well-formed but unusable for the action."""


class UnknownToolError(ToolError):
    """Raised when the model calls a tool that is not in the catalog."""

    def __init__(self, tool_name: str, available: list[str]):
        self.tool_name = tool_name
        super().__init__(
            f"Unknown tool: {tool_name}. Available tools: {', '.join(available)}"
        )
