"""Tool catalog declared to the model service, in ``input_schema`` form."""

from typing import Any

from codemend.models import MAX_SEARCH_RESULTS, ToolName

_FILE_NAME_PROPERTY = {
    "type": "string",
    "description": "Path of the file relative to the project root, exactly as listed.",
}

TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        "name": ToolName.CREATE_FILE.value,
        "description": (
            "Create a new file with complete content. If the file already exists its "
            "content is replaced."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "name": _FILE_NAME_PROPERTY,
                "content": {"type": "string", "description": "Full file content."},
                "language": {"type": "string", "description": "Language identifier."},
            },
            "required": ["name", "content"],
        },
    },
    {
        "name": ToolName.UPDATE_FILE.value,
        "description": (
            "Replace the entire content of an existing file. Always send the complete "
            "file, never a fragment."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "name": _FILE_NAME_PROPERTY,
                "content": {"type": "string", "description": "Full new file content."},
            },
            "required": ["name", "content"],
        },
    },
    {
        "name": ToolName.DELETE_FILE.value,
        "description": "Delete an existing file.",
        "input_schema": {
            "type": "object",
            "properties": {"name": _FILE_NAME_PROPERTY},
            "required": ["name"],
        },
    },
    {
        "name": ToolName.LIST_FILES.value,
        "description": "List every file in the project with its language and size.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": ToolName.SEARCH_FILES.value,
        "description": (
            "Case-insensitive substring search across file names and contents. "
            f"Returns at most {MAX_SEARCH_RESULTS} matches."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Text to search for."},
                "max_results": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": MAX_SEARCH_RESULTS,
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": ToolName.READ_FILE.value,
        "description": "Read the full content of a file.",
        "input_schema": {
            "type": "object",
            "properties": {"file_name": _FILE_NAME_PROPERTY},
            "required": ["file_name"],
        },
    },
    {
        "name": ToolName.READ_FILE_LINES.value,
        "description": "Read a 1-based, inclusive line range of a file.",
        "input_schema": {
            "type": "object",
            "properties": {
                "file_name": _FILE_NAME_PROPERTY,
                "start_line": {"type": "integer", "minimum": 1},
                "end_line": {"type": "integer", "minimum": 1},
            },
            "required": ["file_name", "start_line", "end_line"],
        },
    },
    {
        "name": ToolName.SAVE_KNOWLEDGE.value,
        "description": (
            "Save a fact, pattern or user preference to long-term memory so it can be "
            "recalled in later conversations."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags such as #auth or #style.",
                },
                "content": {"type": "string"},
                "scope": {"type": "string", "enum": ["global", "project"]},
            },
            "required": ["tags", "content"],
        },
    },
    {
        "name": ToolName.MANAGE_TASKS.value,
        "description": "Add, update, complete or delete entries in the project task list.",
        "input_schema": {
            "type": "object",
            "properties": {
                "action": {"type": "string", "enum": ["add", "update", "complete", "delete"]},
                "task": {"type": "string"},
                "phase": {"type": "string"},
                "task_id": {"type": "string"},
                "status": {"type": "string", "enum": ["pending", "in_progress", "completed"]},
            },
            "required": ["action"],
        },
    },
    {
        "name": ToolName.ANALYZE_DEPENDENCIES.value,
        "description": "Report declared packages and external imports per file.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": ToolName.SECURITY_SCAN.value,
        "description": "Scan one file, or the whole project, for common security issues.",
        "input_schema": {"type": "object", "properties": {"file_name": _FILE_NAME_PROPERTY}},
    },
    {
        "name": ToolName.CODE_REVIEW.value,
        "description": "Review one file, or the whole project, for style and quality issues.",
        "input_schema": {"type": "object", "properties": {"file_name": _FILE_NAME_PROPERTY}},
    },
    {
        "name": ToolName.ANALYZE_PERFORMANCE.value,
        "description": "Look for common performance problems in one file or the whole project.",
        "input_schema": {"type": "object", "properties": {"file_name": _FILE_NAME_PROPERTY}},
    },
]

MUTATING_TOOLS: frozenset[str] = frozenset(
    {
        ToolName.CREATE_FILE.value,
        ToolName.UPDATE_FILE.value,
        ToolName.DELETE_FILE.value,
        ToolName.MANAGE_TASKS.value,
    }
)

READ_ONLY_TOOLS: frozenset[str] = frozenset(
    schema["name"] for schema in TOOL_SCHEMAS if schema["name"] not in MUTATING_TOOLS
)

TOOL_NAMES: list[str] = [schema["name"] for schema in TOOL_SCHEMAS]


def is_read_only(tool_name: str) -> bool:
    return tool_name in READ_ONLY_TOOLS
