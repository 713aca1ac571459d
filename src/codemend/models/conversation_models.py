"""Conversation, request and result models for one orchestration call."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from codemend.models.error_models import DetectedError
from codemend.models.file_models import FileDiff, ProjectFile
from codemend.models.knowledge_models import KnowledgeEntry, TodoItem
from codemend.models.tool_models import ToolInvocation

MAX_HISTORY_ENTRIES = 4


class MessageRole(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class AppMode(str, Enum):
    """What the caller wants from this call."""

    FIX = "fix"
    EXPLAIN = "explain"
    CHAT = "chat"


class LoopStatus(str, Enum):
    """Turn loop controller states."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class ConversationTurn(BaseModel):
    """One message in the model conversation.

    Assistant turns may carry the tool invocations they issued; tool turns
    carry the id and name of the invocation whose output they hold.
    """

    model_config = ConfigDict(frozen=False)

    role: MessageRole
    text: str = ""
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)
    tool_call_id: str | None = None
    tool_name: str | None = None


class AgentRole(BaseModel):
    """A persona whose system prompt steers the model."""

    id: str
    name: str
    description: str = ""
    system_prompt: str


DEFAULT_ROLES: list[AgentRole] = [
    AgentRole(
        id="role_architect",
        name="Senior Architect",
        description="Analyzes requirements and creates execution plans.",
        system_prompt=(
            "You are a Senior Software Architect. Analyze the user request and project "
            "context. Create a concise, step-by-step implementation plan and focus on "
            "strategy and structure."
        ),
    ),
    AgentRole(
        id="role_developer",
        name="Full Stack Developer",
        description="Writes code, fixes bugs, and executes plans.",
        system_prompt=(
            "You are an expert Full Stack Developer. Write clean, efficient, and "
            "well-documented code. Execute the provided plan or user instructions precisely."
        ),
    ),
    AgentRole(
        id="role_qa",
        name="QA Engineer",
        description="Finds bugs and security vulnerabilities.",
        system_prompt=(
            "You are a QA and Security Engineer. Analyze the code strictly for bugs, edge "
            "cases, and security flaws. Provide a detailed report and fixed code."
        ),
    ),
    AgentRole(
        id="role_tutor",
        name="Code Tutor",
        description="Explains concepts simply and patiently.",
        system_prompt=(
            "You are a patient and knowledgeable Code Tutor. Explain concepts clearly, use "
            "analogies, and break down complex logic into simple steps."
        ),
    ),
]


class ProjectSummary(BaseModel):
    """Precomputed project overview used by compressed context mode."""

    summary: str
    key_files: list[str] = Field(default_factory=list)
    architecture: str = ""
    dependencies: list[str] = Field(default_factory=list)
    entry_points: list[str] = Field(default_factory=list)


class OrchestratorRequest(BaseModel):
    """Everything one orchestration call needs, supplied by the host."""

    model_config = ConfigDict(frozen=False)

    files: list[ProjectFile]
    active_file: str | None = None
    history: list[ConversationTurn] = Field(default_factory=list)
    message: str
    mode: AppMode = AppMode.FIX
    role: AgentRole = Field(default_factory=lambda: DEFAULT_ROLES[1])
    knowledge: list[KnowledgeEntry] | None = None  # None -> read from the injected store
    todos: list[TodoItem] = Field(default_factory=list)
    project_summary: ProjectSummary | None = None
    use_compression: bool = True
    high_capacity: bool = False

    def recent_history(self) -> list[ConversationTurn]:
        """Return the bounded tail of the caller's history."""
        return list(self.history[-MAX_HISTORY_ENTRIES:])


class OrchestratorResult(BaseModel):
    """Everything one orchestration call produced, even on partial failure."""

    model_config = ConfigDict(frozen=False)

    text: str = ""
    diffs: list[FileDiff] = Field(default_factory=list)
    invocations: list[ToolInvocation] = Field(default_factory=list)
    compression_used: bool = False
    status: LoopStatus = LoopStatus.DONE
    turns: int = 0
    limit_reached: bool = False
    errors: list[DetectedError] = Field(default_factory=list)
    todos: list[TodoItem] = Field(default_factory=list)
    saved_knowledge: list[KnowledgeEntry] = Field(default_factory=list)
    error: str | None = None
