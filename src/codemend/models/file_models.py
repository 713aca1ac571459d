"""Models for project files and proposed file diffs."""

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DiffKind(str, Enum):
    """Kind of change a FileDiff proposes."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ProjectFile(BaseModel):
    """A single file in the read-only project snapshot."""

    model_config = ConfigDict(frozen=True)

    name: str  # Path relative to the project root
    language: str = "plaintext"
    content: str = ""


class FileDiff(BaseModel):
    """A proposed before/after change awaiting external application."""

    model_config = ConfigDict(frozen=False)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    file_name: str
    original_content: str  # Snapshot content at proposal time ("" for new files)
    new_content: str  # "" for deletions
    kind: DiffKind
    diff_text: str = ""  # Unified diff output (git-compatible)
    invocation_id: str | None = None  # Which ToolInvocation proposed this diff
