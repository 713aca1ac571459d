"""End-to-end tests for the turn loop controller (codemend.orchestrator).

A scripted fake model client stands in for the model service, so these
tests exercise the real graph, executor and aggregator.
"""

import asyncio

import pytest

from conftest import ScriptedModelClient, tool_call
from codemend.context import InMemoryKnowledgeStore, InMemoryTaskStore
from codemend.llm import ModelResponse
from codemend.models import (
    AppMode,
    DiffKind,
    ErrorCategory,
    KnowledgeEntry,
    KnowledgeScope,
    LoopStatus,
    MessageRole,
    OrchestratorRequest,
    ProjectFile,
)
from codemend.orchestrator import (
    MAX_TURNS,
    CancellationToken,
    Orchestrator,
    RequestValidationError,
    StreamCallbacks,
    run_sync,
    tools_for_mode,
)
from codemend.orchestrator.aggregator import LIMIT_NOTE
from codemend.recovery import RetryPolicy


def make_request(files, message: str = "Add a docs section to the README", **kwargs) -> OrchestratorRequest:
    """Helper to create an OrchestratorRequest."""
    return OrchestratorRequest(files=files, message=message, **kwargs)


def make_orchestrator(client, fake_sleep, **kwargs) -> Orchestrator:
    """Helper to create an Orchestrator with an in-memory knowledge store."""
    kwargs.setdefault("knowledge_store", InMemoryKnowledgeStore())
    return Orchestrator(client=client, sleep=fake_sleep, **kwargs)


def readme_update(call_id: str = "call_a") -> ModelResponse:
    return ModelResponse(
        text="Updating the README.",
        tool_calls=[
            tool_call(
                "update_file",
                {"name": "README.md", "content": "# Demo project\n\n## Docs\n"},
                call_id,
            )
        ],
    )


class Recorder:
    """Collects every streaming callback."""

    def __init__(self):
        self.text: list[str] = []
        self.invocations = []
        self.diffs = []
        self.statuses: list[str] = []
        self.completed = []
        self.errors: list[str] = []

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_text=self.text.append,
            on_invocation=self.invocations.append,
            on_diff=self.diffs.append,
            on_status=self.statuses.append,
            on_complete=self.completed.append,
            on_error=self.errors.append,
        )


# ---------------------------------------------------------------------------
# Whole-response calls
# ---------------------------------------------------------------------------

class TestRun:
    """Tests for Orchestrator.run."""

    def test_text_only_response_finishes_in_one_turn(self, sample_files, fake_sleep):
        client = ScriptedModelClient([ModelResponse(text="Nothing to change.")])
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.DONE
        assert result.text == "Nothing to change."
        assert result.turns == 1
        assert result.diffs == []
        assert result.limit_reached is False

    def test_tool_call_then_final_answer(self, sample_files, fake_sleep):
        client = ScriptedModelClient([readme_update(), ModelResponse(text="Done, added a section.")])
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.DONE
        assert result.turns == 2
        assert len(result.diffs) == 1
        diff = result.diffs[0]
        assert diff.kind == DiffKind.UPDATE
        assert diff.file_name == "README.md"
        assert diff.original_content == "# Demo project\n"
        assert diff.invocation_id == "call_a"
        assert [inv.name for inv in result.invocations] == ["update_file"]
        assert "Updating the README." in result.text
        assert "Done, added a section." in result.text

        second_call = client.calls[1]["messages"]
        assert second_call[-2].role == MessageRole.ASSISTANT
        assert second_call[-2].tool_invocations[0].id == "call_a"
        assert second_call[-1].role == MessageRole.TOOL
        assert second_call[-1].tool_call_id == "call_a"
        assert second_call[-1].text.startswith("Proposed update to README.md")

    def test_snapshot_is_never_mutated(self, sample_files, fake_sleep):
        before = [file.model_copy() for file in sample_files]
        client = ScriptedModelClient([readme_update()])
        asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))
        assert sample_files == before

    def test_turn_limit_is_enforced(self, sample_files, fake_sleep):
        endless = [
            ModelResponse(tool_calls=[tool_call("list_files", {}, f"c{i}")]) for i in range(10)
        ]
        client = ScriptedModelClient(endless)
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert MAX_TURNS == 5
        assert len(client.calls) == 5
        assert result.turns == 5
        assert result.status == LoopStatus.DONE
        assert result.limit_reached is True
        assert LIMIT_NOTE.format(max_turns=5) in result.text
        assert len(result.invocations) == 5

    def test_smaller_turn_budget(self, sample_files, fake_sleep):
        endless = [ModelResponse(tool_calls=[tool_call("list_files", {})]) for _ in range(10)]
        client = ScriptedModelClient(endless)
        orchestrator = make_orchestrator(client, fake_sleep, max_turns=2)
        result = asyncio.run(orchestrator.run(make_request(sample_files)))
        assert len(client.calls) == 2
        assert result.limit_reached is True

    def test_turn_budget_cannot_exceed_five(self, fake_sleep):
        orchestrator = make_orchestrator(ScriptedModelClient([]), fake_sleep, max_turns=50)
        assert orchestrator.max_turns == 5

    def test_diffs_are_merged_per_file(self, sample_files, fake_sleep):
        client = ScriptedModelClient(
            [
                ModelResponse(
                    tool_calls=[
                        tool_call("create_file", {"name": "docs/guide.md", "content": "v1\n"}, "c1"),
                        tool_call("update_file", {"name": "docs/guide.md", "content": "v2\n"}, "c2"),
                    ]
                ),
                ModelResponse(text=""),
            ]
        )
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert len(result.diffs) == 1
        assert result.diffs[0].kind == DiffKind.CREATE
        assert result.diffs[0].new_content == "v2\n"
        assert result.text == "Proposed 1 operations for review."

    def test_tool_failure_is_fed_back_not_raised(self, sample_files, fake_sleep):
        client = ScriptedModelClient(
            [
                ModelResponse(tool_calls=[tool_call("read_file", {"file_name": "auth.ts"}, "c1")]),
                ModelResponse(text="There is no auth.ts."),
            ]
        )
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.DONE
        tool_turn = client.calls[1]["messages"][-1]
        assert "File not found: auth.ts" in tool_turn.text
        assert "src/app.ts" in tool_turn.text
        assert result.errors[0].category == ErrorCategory.TOOL_EXECUTION
        assert result.diffs == []

    def test_update_of_missing_file_lists_every_name_and_proposes_nothing(self, sample_files, fake_sleep):
        client = ScriptedModelClient(
            [
                ModelResponse(
                    tool_calls=[tool_call("update_file", {"name": "auth.ts", "content": "x"}, "c1")]
                ),
                ModelResponse(text="auth.ts does not exist."),
            ]
        )
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.DONE
        tool_turn = client.calls[1]["messages"][-1]
        assert tool_turn.tool_call_id == "c1"
        assert "File not found: auth.ts" in tool_turn.text
        for file in sample_files:
            assert file.name in tool_turn.text
        assert result.diffs == []

    def test_protected_update_leaves_no_diff(self, sample_files, fake_sleep):
        client = ScriptedModelClient(
            [
                ModelResponse(
                    tool_calls=[
                        tool_call("update_file", {"name": ".env", "content": "API_KEY=rotated\n"}, "c1"),
                        tool_call("update_file", {"name": "README.md", "content": "# Demo\n"}, "c2"),
                    ]
                ),
                ModelResponse(text="Updated the README; .env is off limits."),
            ]
        )
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.DONE
        assert "Permission denied" in client.calls[1]["messages"][-2].text
        assert [diff.file_name for diff in result.diffs] == ["README.md"]
        assert result.errors[0].category == ErrorCategory.PERMISSION

    def test_malformed_arguments_are_repaired(self, sample_files, fake_sleep):
        client = ScriptedModelClient(
            [
                ModelResponse(
                    tool_calls=[
                        tool_call(
                            "update_file",
                            '```json\n{name: "README.md", content: "# New\n",}\n```',
                            "c1",
                        )
                    ]
                ),
                ModelResponse(text="ok"),
            ]
        )
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))
        assert result.diffs[0].new_content == "# New\n"

    def test_tools_disabled(self, sample_files, fake_sleep):
        client = ScriptedModelClient([readme_update()])
        orchestrator = make_orchestrator(client, fake_sleep, tools_enabled=False)
        result = asyncio.run(orchestrator.run(make_request(sample_files)))

        assert client.calls[0]["tools"] is None
        assert result.status == LoopStatus.DONE
        assert result.turns == 1
        assert result.diffs == []
        assert result.invocations == []

    def test_high_capacity_raises_token_budget(self, sample_files, fake_sleep):
        client = ScriptedModelClient([ModelResponse(text="ok")])
        request = make_request(sample_files, high_capacity=True)
        asyncio.run(make_orchestrator(client, fake_sleep).run(request))
        assert client.calls[0]["max_tokens"] == 32768

    def test_run_sync(self, sample_files, fake_sleep):
        client = ScriptedModelClient([ModelResponse(text="hi")])
        result = run_sync(make_orchestrator(client, fake_sleep), make_request(sample_files))
        assert result.text == "hi"


# ---------------------------------------------------------------------------
# Modes, knowledge and tasks
# ---------------------------------------------------------------------------

class TestModes:
    """Tests for per-mode tool sets and prompt inputs."""

    def test_tools_for_mode(self):
        fix = {schema["name"] for schema in tools_for_mode(AppMode.FIX)}
        explain = {schema["name"] for schema in tools_for_mode(AppMode.EXPLAIN)}
        chat = {schema["name"] for schema in tools_for_mode(AppMode.CHAT)}
        assert len(fix) == 13
        assert "update_file" not in explain
        assert "read_file" in explain
        assert chat == {"save_knowledge"}

    def test_chat_mode_declares_only_save_knowledge(self, sample_files, fake_sleep):
        client = ScriptedModelClient([ModelResponse(text="Hello!")])
        request = make_request(sample_files, message="hi there", mode=AppMode.CHAT)
        asyncio.run(make_orchestrator(client, fake_sleep).run(request))

        assert [schema["name"] for schema in client.calls[0]["tools"]] == ["save_knowledge"]
        assert "PROJECT FILES" not in client.calls[0]["system"]

    def test_explain_mode_cannot_mutate(self, sample_files, fake_sleep):
        client = ScriptedModelClient([readme_update(), ModelResponse(text="ok")])
        request = make_request(sample_files, message="what does start do?", mode=AppMode.EXPLAIN)
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(request))

        assert result.diffs == []
        assert "Unknown tool: update_file" in client.calls[1]["messages"][-1].text

    def test_surfaced_knowledge_usage_is_recorded(self, sample_files, fake_sleep):
        store = InMemoryKnowledgeStore(
            [
                KnowledgeEntry(id="k1", tags=["readme"], content="Keep headings short"),
                KnowledgeEntry(
                    id="k2",
                    tags=["database"],
                    content="Use migrations",
                    scope=KnowledgeScope.PROJECT,
                ),
            ]
        )
        client = ScriptedModelClient([ModelResponse(text="ok")])
        orchestrator = make_orchestrator(client, fake_sleep, knowledge_store=store)
        asyncio.run(orchestrator.run(make_request(sample_files, message="polish the readme")))

        counts = {entry.id: entry.usage_count for entry in store.get_all()}
        assert counts == {"k1": 1, "k2": 0}
        assert "Keep headings short" in client.calls[0]["system"]
        assert "Use migrations" not in client.calls[0]["system"]

    def test_saved_knowledge_is_reported(self, sample_files, fake_sleep):
        store = InMemoryKnowledgeStore()
        client = ScriptedModelClient(
            [
                ModelResponse(
                    tool_calls=[
                        tool_call("save_knowledge", {"tags": ["prefs"], "content": "Likes tabs"})
                    ]
                ),
                ModelResponse(text="Noted."),
            ]
        )
        orchestrator = make_orchestrator(client, fake_sleep, knowledge_store=store)
        result = asyncio.run(orchestrator.run(make_request(sample_files, mode=AppMode.CHAT)))

        assert len(result.saved_knowledge) == 1
        assert result.saved_knowledge[0].tags == ["#prefs"]
        assert store.get_all()[0].content == "Likes tabs"

    def test_task_list_is_written_back(self, sample_files, fake_sleep):
        task_store = InMemoryTaskStore()
        client = ScriptedModelClient(
            [
                ModelResponse(
                    tool_calls=[tool_call("manage_tasks", {"action": "add", "task": "Write docs"})]
                ),
                ModelResponse(text="Planned."),
            ]
        )
        orchestrator = make_orchestrator(client, fake_sleep, task_store=task_store)
        result = asyncio.run(orchestrator.run(make_request(sample_files)))

        assert [item.task for item in result.todos] == ["Write docs"]
        assert [item.task for item in task_store.get_all()] == ["Write docs"]

    def test_large_project_reports_compression(self, fake_sleep):
        files = [ProjectFile(name=f"src/f{i}.ts", content="x" * 8_000) for i in range(5)]
        client = ScriptedModelClient([ModelResponse(text="ok")])
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(files)))
        assert result.compression_used is True


# ---------------------------------------------------------------------------
# Failures and cancellation
# ---------------------------------------------------------------------------

class TestFailures:
    """Tests for retries, FAILED results and validation."""

    def test_transient_failure_is_retried(self, sample_files, sleeps, fake_sleep):
        client = ScriptedModelClient([ConnectionError("connection reset"), ModelResponse(text="ok")])
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.DONE
        assert sleeps == [1.0]
        assert result.errors[0].category == ErrorCategory.CONNECTIVITY
        assert result.errors[0].resolved is True
        assert result.turns == 1

    def test_failure_keeps_partial_results(self, sample_files, fake_sleep):
        client = ScriptedModelClient([readme_update(), ValueError("malformed response")])
        result = asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files)))

        assert result.status == LoopStatus.FAILED
        assert len(result.diffs) == 1
        assert result.turns == 1
        assert "malformed response" in result.error
        assert result.errors[-1].category == ErrorCategory.RUNTIME

    def test_exhausted_retries_fail(self, sample_files, sleeps, fake_sleep):
        client = ScriptedModelClient([TimeoutError("timed out")] * 3)
        orchestrator = make_orchestrator(client, fake_sleep, retry_policy=RetryPolicy(max_attempts=3))
        result = asyncio.run(orchestrator.run(make_request(sample_files)))

        assert result.status == LoopStatus.FAILED
        assert len(client.calls) == 3
        assert sleeps == [1.0, 2.0]
        assert len(result.errors) == 3

    def test_missing_client_is_rejected(self, sample_files):
        with pytest.raises(RequestValidationError):
            asyncio.run(Orchestrator(client=None).run(make_request(sample_files)))

    def test_missing_model_is_rejected(self, sample_files):
        client = ScriptedModelClient([], model="")
        with pytest.raises(RequestValidationError):
            asyncio.run(Orchestrator(client=client).run(make_request(sample_files)))

    def test_blank_message_is_rejected(self, sample_files, fake_sleep):
        client = ScriptedModelClient([])
        with pytest.raises(RequestValidationError):
            asyncio.run(make_orchestrator(client, fake_sleep).run(make_request(sample_files, message="  ")))
        assert client.calls == []


class HangingClient:
    """Model client whose calls never finish."""

    model = "hanging-model"

    def __init__(self):
        self.started = 0

    async def complete(self, system, messages, tools, max_tokens):
        self.started += 1
        await asyncio.sleep(3600)

    async def stream(self, system, messages, tools, max_tokens):
        self.started += 1
        await asyncio.sleep(3600)
        yield


class TestCancellation:
    """Tests for the cancellation token."""

    def test_cancel_during_model_call(self, sample_files, fake_sleep):
        client = HangingClient()

        async def scenario():
            token = CancellationToken()
            task = asyncio.create_task(
                make_orchestrator(client, fake_sleep).run(make_request(sample_files), cancel=token)
            )
            await asyncio.sleep(0.05)
            token.cancel()
            return await asyncio.wait_for(task, timeout=5)

        result = asyncio.run(scenario())

        assert client.started == 1
        assert result.status == LoopStatus.ABORTED
        assert result.turns == 0
        assert result.error is None

    def test_cancel_before_start(self, sample_files, fake_sleep):
        client = ScriptedModelClient([ModelResponse(text="never")])

        async def scenario():
            token = CancellationToken()
            token.cancel()
            return await make_orchestrator(client, fake_sleep).run(
                make_request(sample_files), cancel=token
            )

        result = asyncio.run(scenario())
        assert result.status == LoopStatus.ABORTED
        assert client.calls == []

    def test_cancel_keeps_earlier_turns(self, sample_files, fake_sleep):
        async def scenario():
            token = CancellationToken()
            client = ScriptedModelClient([readme_update()])

            async def complete_then_cancel(system, messages, tools, max_tokens):
                if client.calls:
                    token.cancel()
                    await asyncio.sleep(3600)
                return client._next(system, messages, tools, max_tokens)

            client.complete = complete_then_cancel
            task_store = InMemoryTaskStore()
            orchestrator = make_orchestrator(client, fake_sleep, task_store=task_store)
            return await orchestrator.run(make_request(sample_files), cancel=token)

        result = asyncio.run(scenario())
        assert result.status == LoopStatus.ABORTED
        assert len(result.diffs) == 1
        assert result.turns == 1


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

class TestRunStream:
    """Tests for Orchestrator.run_stream."""

    def test_callbacks_fire_and_complete_once(self, sample_files, fake_sleep):
        client = ScriptedModelClient([readme_update(), ModelResponse(text="All done here.")])
        recorder = Recorder()
        result = asyncio.run(
            make_orchestrator(client, fake_sleep).run_stream(
                make_request(sample_files), recorder.callbacks()
            )
        )

        assert "".join(recorder.text) == "Updating the README.All done here."
        assert len(recorder.text) > 2
        assert [inv.name for inv in recorder.invocations] == ["update_file"]
        assert recorder.invocations[0].arguments["name"] == "README.md"
        assert [diff.file_name for diff in recorder.diffs] == ["README.md"]
        assert "Calling update_file..." in recorder.statuses
        assert recorder.completed == [result]
        assert recorder.errors == []

    def test_streamed_result_matches_whole_response(self, sample_files, fake_sleep):
        script = [readme_update(), ModelResponse(text="All done here.")]
        whole = asyncio.run(
            make_orchestrator(ScriptedModelClient(list(script)), fake_sleep).run(make_request(sample_files))
        )
        streamed = asyncio.run(
            make_orchestrator(ScriptedModelClient(list(script), chunk_size=1), fake_sleep).run_stream(
                make_request(sample_files), StreamCallbacks()
            )
        )
        assert streamed.text == whole.text
        assert [d.new_content for d in streamed.diffs] == [d.new_content for d in whole.diffs]
        assert streamed.turns == whole.turns

    def test_failure_fires_on_error_only(self, sample_files, fake_sleep):
        client = ScriptedModelClient([ValueError("boom")])
        recorder = Recorder()
        result = asyncio.run(
            make_orchestrator(client, fake_sleep).run_stream(make_request(sample_files), recorder.callbacks())
        )

        assert result.status == LoopStatus.FAILED
        assert len(recorder.errors) == 1
        assert "boom" in recorder.errors[0]
        assert recorder.completed == []

    def test_validation_failure_fires_on_error(self, sample_files):
        recorder = Recorder()
        result = asyncio.run(
            Orchestrator(client=None).run_stream(make_request(sample_files), recorder.callbacks())
        )
        assert result is None
        assert recorder.errors == ["No model service is configured"]
        assert recorder.completed == []

    def test_cancellation_completes_without_error(self, sample_files, fake_sleep):
        client = HangingClient()
        recorder = Recorder()

        async def scenario():
            token = CancellationToken()
            task = asyncio.create_task(
                make_orchestrator(client, fake_sleep).run_stream(
                    make_request(sample_files), recorder.callbacks(), cancel=token
                )
            )
            await asyncio.sleep(0.05)
            token.cancel()
            return await asyncio.wait_for(task, timeout=5)

        result = asyncio.run(scenario())
        assert result.status == LoopStatus.ABORTED
        assert recorder.completed == [result]
        assert recorder.errors == []
