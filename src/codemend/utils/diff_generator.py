"""Utilities for building proposed file diffs."""

import difflib

from codemend.models import DiffKind, FileDiff


def generate_unified_diff(
    file_name: str,
    original_content: str,
    new_content: str,
) -> str:
    """Generate a git-compatible unified diff.

    Creations diff against /dev/null and deletions diff to /dev/null so the
    output can be fed straight to ``git apply``.

    Args:
        file_name: Path relative to the project root (e.g. "src/app.ts").
        original_content: Snapshot content ("" for new files).
        new_content: Proposed content ("" for deletions).

    Returns:
        Unified diff string. Empty string if nothing changed.
    """
    if original_content == new_content:
        return ""

    from_file = f"a/{file_name}" if original_content else "/dev/null"
    to_file = f"b/{file_name}" if new_content else "/dev/null"

    lines = difflib.unified_diff(
        original_content.splitlines(keepends=True),
        new_content.splitlines(keepends=True),
        fromfile=from_file,
        tofile=to_file,
        lineterm="",
    )
    # keepends=True leaves a newline on body lines; headers have none
    return "\n".join(line[:-1] if line.endswith("\n") else line for line in lines)


def build_file_diff(
    file_name: str,
    original_content: str,
    new_content: str,
    kind: DiffKind,
    invocation_id: str | None = None,
) -> FileDiff:
    """Create a FileDiff with its unified diff text populated."""
    return FileDiff(
        file_name=file_name,
        original_content=original_content,
        new_content=new_content,
        kind=kind,
        diff_text=generate_unified_diff(file_name, original_content, new_content),
        invocation_id=invocation_id,
    )


def count_changed_lines(diff_text: str) -> tuple[int, int]:
    """Return (added, removed) line counts for a unified diff."""
    added = removed = 0
    in_hunk = False
    for line in diff_text.splitlines():
        if line.startswith("@@"):
            in_hunk = True
            continue
        # File headers only precede the first hunk; "+++i;" inside one is an added "++i;"
        if not in_hunk:
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return added, removed
