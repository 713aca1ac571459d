"""Tests for result aggregation (codemend.orchestrator.aggregator)."""

from codemend.models import DiffKind, LoopStatus, TodoItem
from codemend.orchestrator import aggregate, make_initial_state, merge_diffs
from codemend.orchestrator.aggregator import LIMIT_NOTE, final_text
from codemend.utils import build_file_diff


def make_diff(file_name: str, original: str, new: str, kind: DiffKind, invocation_id: str = "c"):
    """Helper to create a FileDiff."""
    return build_file_diff(file_name, original, new, kind, invocation_id=invocation_id)


class TestMergeDiffs:
    """Tests for per-file coalescing."""

    def test_single_proposals_pass_through(self):
        first = make_diff("a.ts", "1\n", "2\n", DiffKind.UPDATE)
        second = make_diff("b.ts", "", "x\n", DiffKind.CREATE)
        assert merge_diffs([first, second]) == [first, second]

    def test_updates_keep_earliest_original_and_latest_content(self):
        merged = merge_diffs(
            [
                make_diff("a.ts", "v0\n", "v1\n", DiffKind.UPDATE, "c1"),
                make_diff("a.ts", "v0\n", "v2\n", DiffKind.UPDATE, "c2"),
            ]
        )
        assert len(merged) == 1
        assert merged[0].kind == DiffKind.UPDATE
        assert merged[0].original_content == "v0\n"
        assert merged[0].new_content == "v2\n"
        assert merged[0].invocation_id == "c2"
        assert "-v0" in merged[0].diff_text
        assert "+v2" in merged[0].diff_text

    def test_create_then_update_stays_create(self):
        merged = merge_diffs(
            [
                make_diff("n.ts", "", "one\n", DiffKind.CREATE),
                make_diff("n.ts", "", "two\n", DiffKind.CREATE),
            ]
        )
        assert merged[0].kind == DiffKind.CREATE
        assert merged[0].new_content == "two\n"

    def test_create_then_delete_disappears(self):
        merged = merge_diffs(
            [
                make_diff("n.ts", "", "one\n", DiffKind.CREATE),
                make_diff("n.ts", "", "", DiffKind.DELETE),
            ]
        )
        assert merged == []

    def test_update_then_delete_becomes_delete(self):
        merged = merge_diffs(
            [
                make_diff("a.ts", "v0\n", "v1\n", DiffKind.UPDATE),
                make_diff("a.ts", "v0\n", "", DiffKind.DELETE),
            ]
        )
        assert merged[0].kind == DiffKind.DELETE
        assert merged[0].original_content == "v0\n"
        assert merged[0].new_content == ""

    def test_delete_then_recreate_is_update(self):
        merged = merge_diffs(
            [
                make_diff("a.ts", "v0\n", "", DiffKind.DELETE),
                make_diff("a.ts", "v0\n", "v9\n", DiffKind.UPDATE),
            ]
        )
        assert merged[0].kind == DiffKind.UPDATE
        assert merged[0].new_content == "v9\n"

    def test_round_trip_to_original_is_dropped(self):
        merged = merge_diffs(
            [
                make_diff("a.ts", "v0\n", "v1\n", DiffKind.UPDATE),
                make_diff("a.ts", "v0\n", "v0\n", DiffKind.UPDATE),
            ]
        )
        assert merged == []

    def test_first_proposal_order_is_kept(self):
        merged = merge_diffs(
            [
                make_diff("b.ts", "", "1\n", DiffKind.CREATE),
                make_diff("a.ts", "x\n", "y\n", DiffKind.UPDATE),
                make_diff("b.ts", "", "2\n", DiffKind.CREATE),
            ]
        )
        assert [diff.file_name for diff in merged] == ["b.ts", "a.ts"]


class TestFinalText:
    """Tests for the caller-facing text."""

    def test_joins_non_empty_parts(self):
        assert final_text(["First.", "  ", "Second."], 0, False, 5) == "First.\n\nSecond."

    def test_summary_when_model_said_nothing(self):
        assert final_text([], 3, False, 5) == "Proposed 3 operations for review."

    def test_empty_without_diffs(self):
        assert final_text([], 0, False, 5) == ""

    def test_limit_note_is_appended(self):
        text = final_text(["Working."], 0, True, 5)
        assert text == "Working.\n\n" + LIMIT_NOTE.format(max_turns=5)


class TestAggregate:
    """Tests for building the OrchestratorResult from loop state."""

    def test_non_terminal_status_becomes_done(self):
        state = make_initial_state("sys", [], max_turns=5)
        state["status"] = LoopStatus.EXECUTING_TOOLS
        result = aggregate(state, compression_used=False, todos=[])
        assert result.status == LoopStatus.DONE

    def test_failed_state_keeps_everything(self):
        state = make_initial_state("sys", [], max_turns=5)
        state.update(
            status=LoopStatus.FAILED,
            model_calls=2,
            text_parts=["Partial."],
            diffs=[make_diff("a.ts", "1\n", "2\n", DiffKind.UPDATE)],
            error="Call failed",
        )
        todos = [TodoItem(id="t1", task="x")]
        result = aggregate(state, compression_used=True, todos=todos)

        assert result.status == LoopStatus.FAILED
        assert result.turns == 2
        assert result.text == "Partial."
        assert len(result.diffs) == 1
        assert result.compression_used is True
        assert result.todos == todos
        assert result.error == "Call failed"
