"""Tests for the data models and their package exports."""

import pytest
from pydantic import ValidationError

import codemend.models as models
from codemend.models import (
    TOOL_ARGUMENT_MODELS,
    DetectedError,
    ErrorCategory,
    ErrorSeverity,
    FileDiff,
    KnowledgeEntry,
    ConversationTurn,
    MessageRole,
    OrchestratorRequest,
    ProjectFile,
    ToolExecutionResult,
    ToolName,
    normalize_tag,
)


def test_all_exports_resolve():
    for name in models.__all__:
        assert hasattr(models, name), name


def test_every_tool_has_an_argument_model():
    assert set(TOOL_ARGUMENT_MODELS) == {tool.value for tool in ToolName}


@pytest.mark.parametrize(
    "raw, expected",
    [("auth", "#auth"), ("#Auth", "#auth"), ("  ##jwt ", "#jwt"), ("#", ""), ("", "")],
)
def test_normalize_tag(raw, expected):
    assert normalize_tag(raw) == expected


def test_knowledge_tags_are_normalized_and_deduplicated():
    entry = KnowledgeEntry(id="k", tags=["Auth", "#auth", "", "jwt"], content="x")
    assert entry.tags == ["#auth", "#jwt"]


def test_knowledge_single_tag_string():
    assert KnowledgeEntry(id="k", tags="style", content="x").tags == ["#style"]


def test_project_file_is_immutable():
    file = ProjectFile(name="a.ts", content="x")
    with pytest.raises(ValidationError):
        file.content = "y"


def test_detected_error_resolve():
    error = DetectedError(category=ErrorCategory.TIMEOUT, severity=ErrorSeverity.MEDIUM, message="t")
    assert error.resolved is False
    assert error.id.startswith("error_")
    error.resolve("auto_retry", "worked on attempt 2")
    assert error.resolved is True
    assert error.resolution.method == "auto_retry"
    assert error.resolution.notes == "worked on attempt 2"


def test_recent_history_is_bounded():
    history = [ConversationTurn(role=MessageRole.USER, text=str(i)) for i in range(10)]
    request = OrchestratorRequest(files=[], message="m", history=history)
    assert [turn.text for turn in request.recent_history()] == ["6", "7", "8", "9"]


def test_all_diffs_combines_single_and_batch():
    single = FileDiff(file_name="a", original_content="", new_content="x", kind="create")
    batch = FileDiff(file_name="b", original_content="y", new_content="", kind="delete")
    result = ToolExecutionResult(output="ok", diff=single, diffs=[batch])
    assert result.all_diffs() == [single, batch]


class TestArgumentAliases:
    """Tool argument records accept the spellings models commonly use."""

    @pytest.mark.parametrize("key", ["file_name", "fileName", "name", "path"])
    def test_read_file_aliases(self, key):
        args = TOOL_ARGUMENT_MODELS["read_file"].model_validate({key: "a.ts"})
        assert args.file_name == "a.ts"

    def test_read_file_lines_camel_case(self):
        args = TOOL_ARGUMENT_MODELS["read_file_lines"].model_validate(
            {"fileName": "a.ts", "startLine": 2, "endLine": "4"}
        )
        assert (args.file_name, args.start_line, args.end_line) == ("a.ts", 2, 4)

    def test_update_file_path_alias(self):
        args = TOOL_ARGUMENT_MODELS["update_file"].model_validate({"path": "a.ts", "content": "x"})
        assert args.name == "a.ts"

    def test_unknown_keys_are_ignored(self):
        args = TOOL_ARGUMENT_MODELS["list_files"].model_validate({"recursive": True})
        assert args.model_dump() == {}

    def test_search_limit_is_bounded(self):
        with pytest.raises(ValidationError):
            TOOL_ARGUMENT_MODELS["search_files"].model_validate({"query": "x", "max_results": 500})

    def test_manage_tasks_rejects_unknown_action(self):
        with pytest.raises(ValidationError):
            TOOL_ARGUMENT_MODELS["manage_tasks"].model_validate({"action": "archive"})
