"""Context budget manager: picks how much of the project the model sees.

Small projects are sent in full. Over the size threshold, a precomputed
project summary plus a shortlist of relevant files is sent (compressed);
without a summary, only the file-name index and the active file are sent
(lazy). Either way the model is told to use the read/search tools for
anything it cannot see.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from codemend.models import ProjectFile, ProjectSummary

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_THRESHOLD = 30_000
RELEVANT_FILE_LIMIT = 10
SUMMARY_KEY_FILES = 10
SUMMARY_DEPENDENCIES = 8
SUMMARY_ENTRY_POINTS = 5

FILENAME_MATCH_SCORE = 50
CONTENT_MATCH_SCORE = 5
CONTENT_MATCH_CAP = 50
CONTEXT_KEYWORD_SCORE = 20
FILE_KIND_SCORE = 30
KEY_FILE_SCORE = 20
SIZE_PENALTY = 10
TINY_FILE_CHARS = 100
HUGE_FILE_CHARS = 50_000

TOOL_USAGE_NOTE = (
    "Not every file's content is shown above. Use the read_file, read_file_lines and "
    "search_files tools to inspect any file before changing it."
)

_KEY_FILE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"package\.json$",
        r"requirements\.txt$",
        r"pyproject\.toml$",
        r"(^|/)index\.",
        r"(^|/)main\.",
        r"(^|/)app\.",
        r"(^|/)server\.",
        r"(^|/)config\.",
        r"readme\.md$",
    )
]
_QUOTED = re.compile(r"\"([^\"]+)\"|'([^']+)'")
_PASCAL = re.compile(r"\b[A-Z][a-z]+(?:[A-Z][a-z]+)*\b")

# Task keywords -> predicate on (name, content)
_FILE_KINDS = [
    (
        ("component", "ui", "button", "form", "modal", "layout", "page", "view", "render", "display"),
        lambda name, content: any(k in name for k in ("component", "view", "page"))
        or name.endswith(".vue")
        or ("return (" in content and "<" in content),
    ),
    (
        ("api", "endpoint", "route", "request", "response", "fetch", "http", "rest"),
        lambda name, content: any(k in name for k in ("api", "route", "endpoint"))
        or any(k in content for k in ("app.get(", "app.post(", "@app.route", "@router.")),
    ),
    (
        ("state", "store", "redux", "context", "provider", "hook", "data"),
        lambda name, content: any(k in name for k in ("store", "state", "context", "provider"))
        or "createContext" in content
        or "useState" in content,
    ),
    (
        ("style", "css", "theme", "color", "layout", "design"),
        lambda name, content: name.endswith((".css", ".scss", ".sass"))
        or "style" in name
        or "theme" in name,
    ),
]


class ContextMode(str, Enum):
    FULL = "full"
    COMPRESSED = "compressed"
    LAZY = "lazy"


@dataclass
class ContextBundle:
    """Context text for the prompt plus how it was built."""

    text: str
    mode: ContextMode
    total_size: int
    included_files: list[str] = field(default_factory=list)

    @property
    def compressed(self) -> bool:
        return self.mode != ContextMode.FULL


def total_size(files: list[ProjectFile]) -> int:
    return sum(len(file.content) for file in files)


def select_context_mode(
    files: list[ProjectFile],
    summary: ProjectSummary | None,
    use_compression: bool = True,
    threshold: int = DEFAULT_CONTEXT_THRESHOLD,
) -> ContextMode:
    if not use_compression or total_size(files) <= threshold:
        return ContextMode.FULL
    return ContextMode.COMPRESSED if summary is not None else ContextMode.LAZY


def is_key_file(file_name: str) -> bool:
    return any(pattern.search(file_name) for pattern in _KEY_FILE_PATTERNS)


def extract_context_keywords(request: str) -> list[str]:
    """Quoted terms and PascalCase identifiers from the request."""
    keywords = [a or b for a, b in _QUOTED.findall(request)]
    keywords.extend(_PASCAL.findall(request))
    return list(dict.fromkeys(keyword for keyword in keywords if keyword))


def score_file_relevance(request: str, file: ProjectFile) -> int:
    """Heuristic relevance of one file to the request."""
    request_lower = request.lower()
    name = file.name.lower()
    content_lower = file.content.lower()
    words = [word for word in request_lower.split() if len(word) > 2]

    score = FILENAME_MATCH_SCORE * sum(1 for word in words if word in name)
    content_hits = sum(1 for word in words if len(word) > 3 and word in content_lower)
    score += min(content_hits * CONTENT_MATCH_SCORE, CONTENT_MATCH_CAP)
    score += CONTEXT_KEYWORD_SCORE * sum(
        1 for keyword in extract_context_keywords(request) if keyword.lower() in content_lower
    )
    for task_keywords, matches_kind in _FILE_KINDS:
        if any(keyword in request_lower for keyword in task_keywords) and matches_kind(
            name, file.content
        ):
            score += FILE_KIND_SCORE
    if is_key_file(file.name):
        score += KEY_FILE_SCORE
    size = len(file.content)
    if size < TINY_FILE_CHARS:
        score -= SIZE_PENALTY
    if size > HUGE_FILE_CHARS:
        score -= SIZE_PENALTY
    return score


def find_relevant_files(
    request: str,
    files: list[ProjectFile],
    limit: int = RELEVANT_FILE_LIMIT,
) -> list[ProjectFile]:
    scored = [(score_file_relevance(request, file), idx, file) for idx, file in enumerate(files)]
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [file for _, _, file in scored[:limit]]


def _file_block(file: ProjectFile) -> str:
    return f"--- {file.name} ({file.language}) ---\n{file.content}"


def _file_index(files: list[ProjectFile]) -> str:
    return "\n".join(f"- {file.name} ({file.language}, {len(file.content)} chars)" for file in files)


def _summary_text(summary: ProjectSummary) -> str:
    dependencies = ", ".join(summary.dependencies[:SUMMARY_DEPENDENCIES]) or "None detected"
    key_files = "\n".join(f"- {name}" for name in summary.key_files[:SUMMARY_KEY_FILES])
    return (
        f"PROJECT SUMMARY:\n{summary.summary or 'No summary available'}\n\n"
        f"ARCHITECTURE: {summary.architecture or 'unknown'}\n\n"
        f"KEY FILES:\n{key_files or '- (none)'}\n\n"
        f"DEPENDENCIES: {dependencies}\n\n"
        f"ENTRY POINTS: {', '.join(summary.entry_points[:SUMMARY_ENTRY_POINTS]) or 'unknown'}"
    )


def build_context(
    files: list[ProjectFile],
    request: str,
    active_file: str | None = None,
    summary: ProjectSummary | None = None,
    use_compression: bool = True,
    threshold: int = DEFAULT_CONTEXT_THRESHOLD,
) -> ContextBundle:
    """Build the project context section of the prompt.

    Args:
        files: The read-only project snapshot.
        request: The user's request, used to rank files in compressed mode.
        active_file: Name of the file open in the editor, always shown fully
            in lazy mode.
        summary: Precomputed project summary, enabling compressed mode.
        use_compression: When False, the full project is always sent.
        threshold: Aggregate character count above which context is reduced.

    Returns:
        ContextBundle with the text, the chosen mode and the names of files
        whose content was included.
    """
    size = total_size(files)
    mode = select_context_mode(files, summary, use_compression, threshold)
    active = next((file for file in files if file.name == active_file), None)

    if mode == ContextMode.FULL:
        included = files
        text = "PROJECT FILES:\n\n" + "\n\n".join(_file_block(file) for file in files)
    elif mode == ContextMode.COMPRESSED:
        included = find_relevant_files(request, files)
        if active is not None and active not in included:
            included = [active] + included[: RELEVANT_FILE_LIMIT - 1]
        text = (
            _summary_text(summary)
            + f"\n\nALL FILES ({len(files)}):\n"
            + _file_index(files)
            + "\n\nRELEVANT FILES:\n\n"
            + "\n\n".join(_file_block(file) for file in included)
            + "\n\n"
            + TOOL_USAGE_NOTE
        )
    else:
        included = [active] if active is not None else []
        active_text = (
            f"\n\nACTIVE FILE:\n\n{_file_block(active)}" if active is not None else ""
        )
        text = (
            f"PROJECT FILES ({len(files)}, {size} chars; content omitted):\n"
            + _file_index(files)
            + active_text
            + "\n\n"
            + TOOL_USAGE_NOTE
        )

    logger.info("Context mode %s for %d files (%d chars)", mode.value, len(files), size)
    return ContextBundle(
        text=text,
        mode=mode,
        total_size=size,
        included_files=[file.name for file in included],
    )
