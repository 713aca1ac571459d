"""Knowledge base and task list models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

TAG_MARKER = "#"


def normalize_tag(tag: str) -> str:
    """Return the canonical form of a tag: lower-case with one leading marker."""
    bare = tag.strip().lstrip(TAG_MARKER).strip().lower()
    return f"{TAG_MARKER}{bare}" if bare else ""


class KnowledgeScope(str, Enum):
    """Visibility of a knowledge entry."""

    GLOBAL = "global"
    PROJECT = "project"


class KnowledgeEntry(BaseModel):
    """A learned fact, pattern or preference persisted across calls."""

    model_config = ConfigDict(frozen=False)

    id: str
    tags: list[str] = Field(default_factory=list)
    content: str
    scope: KnowledgeScope = KnowledgeScope.GLOBAL
    timestamp: datetime = Field(default_factory=datetime.now)
    usage_count: int = 0

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> list[str]:
        if isinstance(value, str):
            value = [value]
        tags: list[str] = []
        for raw in value or []:
            tag = normalize_tag(str(raw))
            if tag and tag not in tags:
                tags.append(tag)
        return tags


class TodoStatus(str, Enum):
    """Status of a task-list entry."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TodoItem(BaseModel):
    """A single entry in the project task list."""

    model_config = ConfigDict(frozen=False)

    id: str
    task: str
    status: TodoStatus = TodoStatus.PENDING
    phase: str = "General"
