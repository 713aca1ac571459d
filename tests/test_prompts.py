"""Tests for prompt assembly (codemend.context.prompts)."""

from datetime import date

from codemend.context import ContextBundle, ContextMode, RankedKnowledge, build_messages, build_system_prompt
from codemend.context.prompts import CHAT_PROMPT, EXPLAIN_TASK, FIX_TASK, FIX_TOOL_RULES
from codemend.models import (
    DEFAULT_ROLES,
    AppMode,
    ConversationTurn,
    KnowledgeEntry,
    MessageRole,
    OrchestratorRequest,
    TodoItem,
)

ROLE = DEFAULT_ROLES[1]
CONTEXT = ContextBundle(text="PROJECT FILES:\n\n--- a.ts ---\nconst a = 1;", mode=ContextMode.FULL, total_size=12)
KNOWLEDGE = [
    RankedKnowledge(KnowledgeEntry(id="k1", tags=["style"], content="Use 2-space indent"), 6.0)
]
TODOS = [TodoItem(id="t1", task="Add tests", phase="QA")]
TODAY = date(2026, 1, 15)


class TestBuildSystemPrompt:
    """Tests for per-mode system prompts."""

    def test_fix_prompt_sections(self):
        prompt = build_system_prompt(AppMode.FIX, ROLE, CONTEXT, KNOWLEDGE, TODOS, today=TODAY)
        assert prompt.startswith(ROLE.system_prompt)
        assert FIX_TASK in prompt
        assert CONTEXT.text in prompt
        assert "[ ] t1 (QA): Add tests" in prompt
        assert "- #style: Use 2-space indent" in prompt
        assert FIX_TOOL_RULES in prompt
        assert prompt.endswith("Current date: 2026-01-15")

    def test_fix_prompt_without_tools_has_no_tool_rules(self):
        prompt = build_system_prompt(AppMode.FIX, ROLE, CONTEXT, [], [], tools_enabled=False)
        assert FIX_TOOL_RULES not in prompt
        assert "RELEVANT KNOWLEDGE" not in prompt
        assert "TASK LIST" not in prompt

    def test_explain_prompt(self):
        prompt = build_system_prompt(AppMode.EXPLAIN, ROLE, CONTEXT, [], [])
        assert EXPLAIN_TASK in prompt
        assert CONTEXT.text in prompt
        assert FIX_TOOL_RULES not in prompt

    def test_chat_prompt_ignores_role_and_context(self):
        prompt = build_system_prompt(AppMode.CHAT, ROLE, None, KNOWLEDGE, TODOS, today=TODAY)
        assert prompt.startswith(CHAT_PROMPT)
        assert ROLE.system_prompt not in prompt
        assert "TASK LIST" not in prompt
        assert "Use 2-space indent" in prompt
        assert "2026-01-15" in prompt


class TestBuildMessages:
    """Tests for bounded history plus the new user message."""

    def test_history_is_bounded_and_system_turns_dropped(self):
        history = [
            ConversationTurn(role=MessageRole.USER, text=f"u{i}") for i in range(6)
        ] + [ConversationTurn(role=MessageRole.SYSTEM, text="sys")]
        request = OrchestratorRequest(files=[], message="now", history=history)

        messages = build_messages(request)

        assert [m.text for m in messages] == ["u3", "u4", "u5", "now"]
        assert messages[-1].role == MessageRole.USER

    def test_no_history(self):
        request = OrchestratorRequest(files=[], message="hello")
        assert [m.text for m in build_messages(request)] == ["hello"]
