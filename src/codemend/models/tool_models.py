"""Models for tool invocations, their results and their argument records."""

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from codemend.models.error_models import DetectedError
from codemend.models.file_models import FileDiff
from codemend.models.knowledge_models import KnowledgeScope, TodoStatus

MAX_SEARCH_RESULTS = 20


class ToolName(str, Enum):
    """Every operation the model may call."""

    CREATE_FILE = "create_file"
    UPDATE_FILE = "update_file"
    DELETE_FILE = "delete_file"
    LIST_FILES = "list_files"
    SEARCH_FILES = "search_files"
    READ_FILE = "read_file"
    READ_FILE_LINES = "read_file_lines"
    SAVE_KNOWLEDGE = "save_knowledge"
    MANAGE_TASKS = "manage_tasks"
    ANALYZE_DEPENDENCIES = "analyze_dependencies"
    SECURITY_SCAN = "security_scan"
    CODE_REVIEW = "code_review"
    ANALYZE_PERFORMANCE = "analyze_performance"


class ToolInvocation(BaseModel):
    """A named operation request issued by the model."""

    model_config = ConfigDict(frozen=False)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    turn: int = 0
    argument_error: str | None = None  # Set when the raw arguments could not be repaired


class ToolExecutionResult(BaseModel):
    """Outcome of one tool invocation, fed back to the model as text."""

    model_config = ConfigDict(frozen=False)

    output: str
    diff: FileDiff | None = None
    diffs: list[FileDiff] = Field(default_factory=list)  # Batch edits
    metadata: dict[str, Any] | None = None  # Passed through untouched
    success: bool = True
    errors: list[DetectedError] = Field(default_factory=list)

    def all_diffs(self) -> list[FileDiff]:
        """Return the single diff and the batch diffs as one list."""
        return ([self.diff] if self.diff is not None else []) + list(self.diffs)


# ---------------------------------------------------------------------------
# Argument records, one per tool
# ---------------------------------------------------------------------------

_FILE_NAME = AliasChoices("file_name", "fileName", "name", "path")


class ToolArguments(BaseModel):
    """Base for validated per-tool argument records."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CreateFileArgs(ToolArguments):
    name: str = Field(validation_alias=AliasChoices("name", "file_name", "fileName", "path"))
    content: str
    language: str | None = None


class UpdateFileArgs(ToolArguments):
    name: str = Field(validation_alias=AliasChoices("name", "file_name", "fileName", "path"))
    content: str


class DeleteFileArgs(ToolArguments):
    name: str = Field(validation_alias=AliasChoices("name", "file_name", "fileName", "path"))


class ListFilesArgs(ToolArguments):
    pass


class SearchFilesArgs(ToolArguments):
    query: str = Field(min_length=1)
    max_results: int = Field(
        default=MAX_SEARCH_RESULTS,
        ge=1,
        le=MAX_SEARCH_RESULTS,
        validation_alias=AliasChoices("max_results", "maxResults"),
    )


class ReadFileArgs(ToolArguments):
    file_name: str = Field(validation_alias=_FILE_NAME)


class ReadFileLinesArgs(ToolArguments):
    file_name: str = Field(validation_alias=_FILE_NAME)
    start_line: int = Field(validation_alias=AliasChoices("start_line", "startLine"))
    end_line: int = Field(validation_alias=AliasChoices("end_line", "endLine"))


class SaveKnowledgeArgs(ToolArguments):
    tags: list[str]
    content: str = Field(min_length=1)
    scope: KnowledgeScope | None = None


class ManageTasksArgs(ToolArguments):
    action: Literal["add", "update", "complete", "delete"]
    task: str | None = None
    phase: str | None = None
    task_id: str | None = Field(default=None, validation_alias=AliasChoices("task_id", "taskId"))
    status: TodoStatus | None = None


class OptionalFileArgs(ToolArguments):
    """Arguments for diagnostics that scan one file or the whole snapshot."""

    file_name: str | None = Field(default=None, validation_alias=_FILE_NAME)


TOOL_ARGUMENT_MODELS: dict[str, type[ToolArguments]] = {
    ToolName.CREATE_FILE.value: CreateFileArgs,
    ToolName.UPDATE_FILE.value: UpdateFileArgs,
    ToolName.DELETE_FILE.value: DeleteFileArgs,
    ToolName.LIST_FILES.value: ListFilesArgs,
    ToolName.SEARCH_FILES.value: SearchFilesArgs,
    ToolName.READ_FILE.value: ReadFileArgs,
    ToolName.READ_FILE_LINES.value: ReadFileLinesArgs,
    ToolName.SAVE_KNOWLEDGE.value: SaveKnowledgeArgs,
    ToolName.MANAGE_TASKS.value: ManageTasksArgs,
    ToolName.ANALYZE_DEPENDENCIES.value: ListFilesArgs,
    ToolName.SECURITY_SCAN.value: OptionalFileArgs,
    ToolName.CODE_REVIEW.value: OptionalFileArgs,
    ToolName.ANALYZE_PERFORMANCE.value: OptionalFileArgs,
}
