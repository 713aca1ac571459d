"""Result aggregation across turns.

All functions are stateless and have no external dependencies.
"""

from codemend.models import (
    DiffKind,
    FileDiff,
    LoopStatus,
    OrchestratorResult,
    TodoItem,
)
from codemend.orchestrator.state import TurnState
from codemend.utils import build_file_diff

LIMIT_NOTE = (
    "[Reached the limit of {max_turns} tool turns. Stopping here; "
    "ask to continue if more work is needed.]"
)
PROPOSAL_SUMMARY = "Proposed {count} operations for review."


def _coalesce(first: FileDiff, last: FileDiff) -> FileDiff | None:
    """Merge the earliest and latest proposal for one file, or None if they cancel."""
    existed_before = first.kind != DiffKind.CREATE
    exists_after = last.kind != DiffKind.DELETE
    if existed_before and exists_after:
        kind = DiffKind.UPDATE
    elif existed_before:
        kind = DiffKind.DELETE
    elif exists_after:
        kind = DiffKind.CREATE
    else:
        return None
    if kind == DiffKind.UPDATE and first.original_content == last.new_content:
        return None
    merged = build_file_diff(
        last.file_name,
        first.original_content,
        last.new_content,
        kind,
        invocation_id=last.invocation_id,
    )
    merged.id = last.id
    return merged


def merge_diffs(diffs: list[FileDiff]) -> list[FileDiff]:
    """Coalesce per-file proposals into one diff per file.

    Keeps the earliest original content and the latest new content. A
    create followed by updates stays a create, a create followed by a delete
    disappears, and an update followed by a delete becomes a delete. Files
    keep the order of their first proposal.

    Args:
        diffs: Proposals in the order they were made.

    Returns:
        One FileDiff per file (single proposals are returned unchanged).
    """
    grouped: dict[str, list[FileDiff]] = {}
    for diff in diffs:
        grouped.setdefault(diff.file_name, []).append(diff)

    merged: list[FileDiff] = []
    for proposals in grouped.values():
        if len(proposals) == 1:
            merged.append(proposals[0])
            continue
        combined = _coalesce(proposals[0], proposals[-1])
        if combined is not None:
            merged.append(combined)
    return merged


def final_text(text_parts: list[str], diff_count: int, limit_reached: bool, max_turns: int) -> str:
    text = "\n\n".join(part.strip() for part in text_parts if part.strip())
    if not text and diff_count:
        text = PROPOSAL_SUMMARY.format(count=diff_count)
    if limit_reached:
        note = LIMIT_NOTE.format(max_turns=max_turns)
        text = f"{text}\n\n{note}" if text else note
    return text


def aggregate(
    state: TurnState,
    compression_used: bool,
    todos: list[TodoItem],
) -> OrchestratorResult:
    """Build the caller-facing result from the final loop state.

    Whatever earlier turns produced is always returned, including when the
    loop ended FAILED or ABORTED.
    """
    diffs = merge_diffs(state["diffs"])
    status = state["status"]
    if status in (LoopStatus.AWAITING_MODEL, LoopStatus.EXECUTING_TOOLS):
        status = LoopStatus.DONE
    return OrchestratorResult(
        text=final_text(state["text_parts"], len(diffs), state["limit_reached"], state["max_turns"]),
        diffs=diffs,
        invocations=list(state["invocations"]),
        compression_used=compression_used,
        status=status,
        turns=state["model_calls"],
        limit_reached=state["limit_reached"],
        errors=list(state["errors"]),
        todos=list(todos),
        saved_knowledge=list(state["saved_knowledge"]),
        error=state["error"],
    )
