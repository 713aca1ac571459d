"""Best-effort recovery of malformed JSON tool arguments.

Models regularly emit argument strings that are almost JSON: wrapped in
markdown fences, with trailing commas, unquoted keys or raw newlines inside
string values. The repairs below are applied cumulatively, in order, and the
first one that yields a JSON object wins.
"""

import json
import logging
import re
from typing import Any

from codemend.llm.exceptions import ArgumentRepairError

logger = logging.getLogger(__name__)

ERROR_PREFIX_CHARS = 50

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_PAIR = re.compile(
    r"""["']?([A-Za-z_][A-Za-z0-9_]*)["']?\s*:\s*("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^,}\n]+)"""
)
_INTEGER = re.compile(r"^-?\d+$")


def strip_fences(text: str) -> str:
    """Remove markdown code fences and surrounding whitespace."""
    text = text.strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def _split_strings(text: str) -> list[tuple[bool, str]]:
    """Split text into (inside_string, segment) runs by double-quoted literals."""
    segments: list[tuple[bool, str]] = []
    current: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                segments.append((True, "".join(current)))
                current = []
                in_string = False
        elif char == '"':
            if current:
                segments.append((False, "".join(current)))
            current = [char]
            in_string = True
        else:
            current.append(char)
    if current:
        segments.append((in_string, "".join(current)))
    return segments


def _outside_strings(pattern: re.Pattern, replacement: str, text: str) -> str:
    return "".join(
        segment if inside else pattern.sub(replacement, segment)
        for inside, segment in _split_strings(text)
    )


def remove_trailing_commas(text: str) -> str:
    return _outside_strings(_TRAILING_COMMA, r"\1", text)


def quote_bare_keys(text: str) -> str:
    """Quote unquoted object keys, leaving string values untouched."""
    return _outside_strings(_BARE_KEY, r'\1"\2":', text)


def escape_newlines_in_strings(text: str) -> str:
    """Escape raw control characters that appear inside JSON string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char == "\n":
                out.append("\\n")
                continue
            elif char == "\r":
                out.append("\\r")
                continue
            elif char == "\t":
                out.append("\\t")
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def _try_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _coerce_scalar(raw: str) -> Any:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        inner = value[1:-1]
        try:
            return json.loads(f'"{inner}"') if value[0] == '"' else inner
        except json.JSONDecodeError:
            return inner
    if _INTEGER.match(value):
        return int(value)
    if value in ("true", "false"):
        return value == "true"
    return value


def extract_pairs(text: str) -> dict[str, Any]:
    """Regex fallback: pull flat key/value pairs out of broken JSON."""
    return {key: _coerce_scalar(value) for key, value in _PAIR.findall(text)}


def repair_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Parse a tool argument payload, repairing common model mistakes.

    Args:
        raw: The argument string as streamed/returned by the model. Dicts
            are returned unchanged (some providers pre-parse arguments).

    Returns:
        The argument map. Blank input yields an empty map.

    Raises:
        ArgumentRepairError: If the input is non-empty and nothing could be
            recovered from it. The message names the offending prefix.
    """
    if isinstance(raw, dict):
        return raw
    if raw is None or not raw.strip():
        return {}

    text = strip_fences(raw)
    parsed = _try_object(text)
    if parsed is not None:
        return parsed

    for repair in (remove_trailing_commas, quote_bare_keys, escape_newlines_in_strings):
        text = repair(text)
        parsed = _try_object(text)
        if parsed is not None:
            logger.debug("Repaired tool arguments with %s", repair.__name__)
            return parsed

    pairs = extract_pairs(text)
    if pairs:
        logger.warning("Recovered %d tool argument(s) by pattern extraction", len(pairs))
        return pairs

    prefix = raw.strip()[:ERROR_PREFIX_CHARS]
    raise ArgumentRepairError(f"Could not parse tool arguments near: {prefix!r}")
