"""Deterministic parameter auto-fix for failed tool calls.

Given the failure of one tool call, propose corrected arguments for a single
re-invocation, or None when no safe correction exists.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from codemend.models import ToolName
from codemend.tools.exceptions import LineRangeError, ToolFileNotFoundError

logger = logging.getLogger(__name__)

PATH_PREFIXES = ("src/", "./", "app/", "lib/")
MIN_FUZZY_LENGTH = 3

_FILE_KEYS = ("name", "file_name", "fileName", "path")

# Tool -> canonical key of its file argument
_FILE_ARGUMENT: dict[str, str] = {
    ToolName.UPDATE_FILE.value: "name",
    ToolName.DELETE_FILE.value: "name",
    ToolName.READ_FILE.value: "file_name",
    ToolName.READ_FILE_LINES.value: "file_name",
}


@dataclass
class AutoFix:
    """Corrected arguments plus a human-readable note of what changed."""

    arguments: dict[str, Any]
    note: str


def _path_variants(requested: str) -> list[str]:
    cleaned = requested.strip().replace("\\", "/")
    variants = [cleaned]
    for prefix in ("./", "/"):
        if cleaned.startswith(prefix):
            variants.append(cleaned[len(prefix):])
    base = variants[-1]
    for prefix in PATH_PREFIXES:
        if base.startswith(prefix):
            variants.append(base[len(prefix):])
        else:
            variants.append(prefix + base)
    return variants


def match_file_name(requested: str, file_names: list[str]) -> str | None:
    """Find the one existing file the model most likely meant.

    Tries conventional path-prefix variants first, then a case-insensitive
    exact match, then a bidirectional substring match. Ambiguous fuzzy
    matches are refused rather than guessed.

    Args:
        requested: The file name the model asked for.
        file_names: Every file in the working view.

    Returns:
        The matching file name, or None if there is no unique candidate.
    """
    existing = set(file_names)
    for variant in _path_variants(requested):
        if variant in existing and variant != requested:
            return variant

    lowered = requested.strip().lower()
    exact = [name for name in file_names if name.lower() == lowered]
    if len(exact) == 1:
        return exact[0]

    if len(lowered) < MIN_FUZZY_LENGTH:
        return None
    candidates = [
        name
        for name in file_names
        if lowered in name.lower() or (len(name) >= MIN_FUZZY_LENGTH and name.lower() in lowered)
    ]
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        logger.info("Refusing ambiguous file match for %r: %s", requested, candidates)
    return None


def _file_argument(arguments: dict[str, Any]) -> tuple[str | None, str | None]:
    for key in _FILE_KEYS:
        value = arguments.get(key)
        if isinstance(value, str) and value:
            return key, value
    return None, None


def _missing_fields(exc: ValidationError) -> set[str]:
    return {
        str(error["loc"][0])
        for error in exc.errors()
        if error.get("type") == "missing" and error.get("loc")
    }


def suggest_fix(
    tool_name: str,
    arguments: dict[str, Any],
    error: Exception,
    file_names: list[str],
    active_file: str | None = None,
    line_count: Callable[[str], int | None] | None = None,
) -> AutoFix | None:
    """Propose corrected arguments for one failed tool call.

    Args:
        tool_name: The failing tool.
        arguments: The arguments it was called with.
        error: The exception the call raised.
        file_names: Current file names in the working view.
        active_file: The caller's active file, used as the default target.
        line_count: Returns the line count of a file, or None if missing.

    Returns:
        An AutoFix, or None if no deterministic correction applies.
    """
    if isinstance(error, ToolFileNotFoundError):
        key, requested = _file_argument(arguments)
        if key is None or requested is None:
            return None
        match = match_file_name(requested, file_names)
        if match is None:
            return None
        return AutoFix({**arguments, key: match}, f"used '{match}' instead of '{requested}'")

    if isinstance(error, LineRangeError):
        total = error.total_lines
        if total < 1:
            return None
        start = min(max(1, error.start_line), total)
        end = min(max(start, error.end_line), total)
        fixed = {
            key: value
            for key, value in arguments.items()
            if key not in ("startLine", "endLine", "start_line", "end_line")
        }
        fixed.update(start_line=start, end_line=end)
        return AutoFix(fixed, f"clamped line range to {start}-{end}")

    if isinstance(error, ValidationError):
        missing = _missing_fields(error)
        fixed = dict(arguments)
        notes: list[str] = []
        file_key = _FILE_ARGUMENT.get(tool_name)
        if file_key and file_key in missing:
            if not active_file or active_file not in file_names:
                return None
            fixed[file_key] = active_file
            notes.append(f"defaulted {file_key} to active file '{active_file}'")
        if tool_name == ToolName.READ_FILE_LINES.value and missing & {"start_line", "end_line"}:
            target = fixed.get("file_name") or _file_argument(fixed)[1]
            total = line_count(target) if (line_count and target) else None
            if not total:
                return None
            if "start_line" in missing:
                fixed["start_line"] = 1
            if "end_line" in missing:
                fixed["end_line"] = total
            notes.append("defaulted missing line bounds to the whole file")
        if not notes:
            return None
        return AutoFix(fixed, "; ".join(notes))

    return None
