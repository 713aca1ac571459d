"""File tools: create, update, delete, list, search and read.

Every handler is a function of its validated argument record and the
working view. Mutations are *proposed*: they return a FileDiff and update
the overlay, never the caller's snapshot.
"""

import logging
import os

from codemend.models import DiffKind, FileDiff, ToolExecutionResult
from codemend.models.tool_models import (
    CreateFileArgs,
    DeleteFileArgs,
    ListFilesArgs,
    ReadFileArgs,
    ReadFileLinesArgs,
    SearchFilesArgs,
    UpdateFileArgs,
)
from codemend.tools.exceptions import LineRangeError, ProtectedPathError
from codemend.tools.protected import is_protected_path
from codemend.tools.workspace import ToolContext
from codemend.utils import build_file_diff, count_changed_lines

logger = logging.getLogger(__name__)

MAX_MATCH_PREVIEW = 160

_EXTENSION_LANGUAGES = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".py": "python",
    ".json": "json",
    ".css": "css",
    ".scss": "scss",
    ".html": "html",
    ".md": "markdown",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".sh": "shell",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
}


def guess_language(file_name: str) -> str:
    _, ext = os.path.splitext(file_name.lower())
    return _EXTENSION_LANGUAGES.get(ext, "plaintext")


def _guard(file_name: str, action: str) -> None:
    if is_protected_path(file_name):
        logger.warning("Blocked %s on protected path %s", action, file_name)
        raise ProtectedPathError(file_name, action)


def _propose_write(
    ctx: ToolContext,
    file_name: str,
    content: str,
    language: str | None = None,
) -> FileDiff | None:
    """Propose new content for ``file_name``; None if nothing would change."""
    ws = ctx.working_set
    if ws.exists(file_name) and ws.content(file_name) == content:
        return None
    kind = DiffKind.UPDATE if ws.in_snapshot(file_name) else DiffKind.CREATE
    diff = build_file_diff(file_name, ws.snapshot_content(file_name), content, kind)
    ws.propose(file_name, content, language or ws.language(file_name))
    return diff


def _summarize(diff: FileDiff) -> str:
    added, removed = count_changed_lines(diff.diff_text)
    return f"+{added} -{removed} lines"


def create_file(args: CreateFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    _guard(args.name, "create_file")
    existed = ctx.working_set.exists(args.name)
    language = args.language or guess_language(args.name)
    diff = _propose_write(ctx, args.name, args.content, language)
    if diff is None:
        return ToolExecutionResult(output=f"No changes: {args.name} already has this content.")
    if existed:
        output = f"File {args.name} already existed; proposed overwrite ({_summarize(diff)})."
    else:
        output = f"Proposed new file {args.name} ({len(args.content.splitlines())} lines)."
    return ToolExecutionResult(output=output, diff=diff)


def update_file(args: UpdateFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    _guard(args.name, "update_file")
    ctx.working_set.content(args.name)  # Raises when missing
    diff = _propose_write(ctx, args.name, args.content)
    if diff is None:
        return ToolExecutionResult(output=f"No changes: {args.name} already has this content.")
    return ToolExecutionResult(
        output=f"Proposed update to {args.name} ({_summarize(diff)}).",
        diff=diff,
    )


def delete_file(args: DeleteFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    _guard(args.name, "delete_file")
    ws = ctx.working_set
    ws.content(args.name)
    diff = build_file_diff(args.name, ws.snapshot_content(args.name), "", DiffKind.DELETE)
    ws.propose(args.name, None)
    return ToolExecutionResult(output=f"Proposed deletion of {args.name}.", diff=diff)


def list_files(args: ListFilesArgs, ctx: ToolContext) -> ToolExecutionResult:
    ws = ctx.working_set
    names = ws.names()
    if not names:
        return ToolExecutionResult(output="The project has no files.", metadata={"files": []})
    lines = [f"- {name} ({ws.language(name)}, {len(ws.content(name))} chars)" for name in names]
    return ToolExecutionResult(
        output=f"{len(names)} file(s):\n" + "\n".join(lines),
        metadata={"files": names},
    )


def search_files(args: SearchFilesArgs, ctx: ToolContext) -> ToolExecutionResult:
    """Case-insensitive substring search over file names and line contents."""
    ws = ctx.working_set
    needle = args.query.lower()
    matches: list[str] = []
    for name in ws.names():
        if len(matches) > args.max_results:
            break
        if needle in name.lower():
            matches.append(f"{name}: (file name match)")
        for number, line in enumerate(ws.content(name).splitlines(), start=1):
            if len(matches) > args.max_results:
                break
            if needle in line.lower():
                matches.append(f"{name}:{number}: {line.strip()[:MAX_MATCH_PREVIEW]}")
    truncated = len(matches) > args.max_results
    matches = matches[: args.max_results]

    if not matches:
        return ToolExecutionResult(output=f"No matches for '{args.query}'.", metadata={"matches": 0})
    header = f"Found {len(matches)} match(es) for '{args.query}'"
    if truncated:
        header += f" (limited to {args.max_results})"
    return ToolExecutionResult(
        output=header + ":\n" + "\n".join(matches),
        metadata={"matches": len(matches)},
    )


def read_file(args: ReadFileArgs, ctx: ToolContext) -> ToolExecutionResult:
    ws = ctx.working_set
    content = ws.content(args.file_name)
    return ToolExecutionResult(
        output=f"File: {args.file_name} ({ws.language(args.file_name)})\n{content}"
    )


def read_file_lines(args: ReadFileLinesArgs, ctx: ToolContext) -> ToolExecutionResult:
    """Return a 1-based, inclusive line range with line numbers."""
    lines = ctx.working_set.content(args.file_name).splitlines()
    total = len(lines)
    if args.start_line < 1 or args.end_line < args.start_line or args.start_line > total:
        raise LineRangeError(args.file_name, args.start_line, args.end_line, total)
    end = min(args.end_line, total)
    width = len(str(end))
    numbered = [
        f"{number:>{width}} | {lines[number - 1]}" for number in range(args.start_line, end + 1)
    ]
    return ToolExecutionResult(
        output=f"File: {args.file_name} lines {args.start_line}-{end} of {total}\n"
        + "\n".join(numbered)
    )
