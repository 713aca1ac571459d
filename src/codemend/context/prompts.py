"""Prompt assembly: role text, context, knowledge and task list."""

from datetime import date

from codemend.context.budget import ContextBundle
from codemend.context.knowledge import RankedKnowledge
from codemend.models import (
    AgentRole,
    AppMode,
    ConversationTurn,
    MessageRole,
    OrchestratorRequest,
    TodoItem,
    TodoStatus,
)

FIX_TASK = "Task: Carry out the user's request by changing the project files."
EXPLAIN_TASK = "Task: Explain the code or answer the question. Do not change files."

FIX_TOOL_RULES = """\
Use the available tools to apply changes:
- create_file / update_file / delete_file propose changes; the user reviews every \
change as a diff before it is applied.
- update_file and create_file always take the FULL content of the file, never a snippet.
- Use list_files, search_files, read_file and read_file_lines to inspect files you \
cannot see.
- Use manage_tasks to track multi-step work and save_knowledge to remember durable \
facts or preferences.
- Protected files (environment files, credentials, lockfiles, VCS metadata) cannot \
be modified."""

CHAT_PROMPT = """\
You are a helpful, knowledgeable AI assistant.
You can learn from the user with the save_knowledge tool: save durable preferences \
and facts with short tags."""

_STATUS_MARKS = {
    TodoStatus.PENDING: "[ ]",
    TodoStatus.IN_PROGRESS: "[~]",
    TodoStatus.COMPLETED: "[x]",
}


def knowledge_section(ranked: list[RankedKnowledge]) -> str:
    if not ranked:
        return ""
    lines = [f"- {' '.join(item.entry.tags)}: {item.entry.content}" for item in ranked]
    return "RELEVANT KNOWLEDGE:\n" + "\n".join(lines)


def todo_section(todos: list[TodoItem]) -> str:
    if not todos:
        return ""
    lines = [
        f"{_STATUS_MARKS[item.status]} {item.id} ({item.phase}): {item.task}" for item in todos
    ]
    return "TASK LIST:\n" + "\n".join(lines)


def build_system_prompt(
    mode: AppMode,
    role: AgentRole,
    context: ContextBundle | None,
    knowledge: list[RankedKnowledge],
    todos: list[TodoItem],
    tools_enabled: bool = True,
    today: date | None = None,
) -> str:
    """Assemble the system prompt for one orchestration call.

    CHAT mode gets a general assistant prompt with knowledge only. FIX and
    EXPLAIN get the role prompt, project context and task list; FIX also
    gets the tool rules when tools are enabled.
    """
    knowledge_text = knowledge_section(knowledge)
    current = f"Current date: {(today or date.today()).isoformat()}"

    if mode == AppMode.CHAT:
        sections = [CHAT_PROMPT, knowledge_text, current]
    else:
        sections = [
            role.system_prompt,
            FIX_TASK if mode == AppMode.FIX else EXPLAIN_TASK,
            context.text if context is not None else "",
            todo_section(todos),
            knowledge_text,
            FIX_TOOL_RULES if (mode == AppMode.FIX and tools_enabled) else "",
            current,
        ]
    return "\n\n".join(section for section in sections if section)


def build_messages(request: OrchestratorRequest) -> list[ConversationTurn]:
    """Bounded recent history followed by the new user message."""
    history = [turn for turn in request.recent_history() if turn.role != MessageRole.SYSTEM]
    return history + [ConversationTurn(role=MessageRole.USER, text=request.message)]
