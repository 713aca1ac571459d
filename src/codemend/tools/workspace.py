"""Working view of the project snapshot for one orchestration call."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from codemend.models import ProjectFile, TodoItem
from codemend.tools.exceptions import ToolFileNotFoundError

if TYPE_CHECKING:
    from codemend.context.stores import KnowledgeStore


class WorkingSet:
    """The immutable snapshot plus an overlay of proposed changes.

    Later tool calls in the same orchestration call see earlier proposals,
    while the snapshot itself is never touched: ``snapshot_content`` always
    returns what the caller supplied, which is what every FileDiff records
    as its original content.
    """

    def __init__(self, files: list[ProjectFile]):
        self._snapshot: dict[str, ProjectFile] = {file.name: file for file in files}
        self._overlay: dict[str, str | None] = {}  # None marks a proposed deletion
        self._languages: dict[str, str] = {}
        self._order: list[str] = [file.name for file in files]

    def names(self) -> list[str]:
        """Current file names in snapshot order, then newly created files."""
        return [name for name in self._order if self.exists(name)]

    def exists(self, name: str) -> bool:
        if name in self._overlay:
            return self._overlay[name] is not None
        return name in self._snapshot

    def in_snapshot(self, name: str) -> bool:
        return name in self._snapshot

    def content(self, name: str) -> str:
        """Return the current content of ``name``.

        Raises:
            ToolFileNotFoundError: If the file does not exist in the working view.
        """
        if not self.exists(name):
            raise ToolFileNotFoundError(name, self.names())
        if name in self._overlay:
            return self._overlay[name] or ""
        return self._snapshot[name].content

    def snapshot_content(self, name: str) -> str:
        file = self._snapshot.get(name)
        return file.content if file is not None else ""

    def language(self, name: str) -> str:
        if name in self._languages:
            return self._languages[name]
        file = self._snapshot.get(name)
        return file.language if file is not None else "plaintext"

    def propose(self, name: str, content: str | None, language: str | None = None) -> None:
        """Record a proposed write (or deletion when ``content`` is None)."""
        self._overlay[name] = content
        if language:
            self._languages[name] = language
        if name not in self._order:
            self._order.append(name)

    def line_count(self, name: str) -> int | None:
        if not self.exists(name):
            return None
        return len(self.content(name).splitlines())

    def total_size(self) -> int:
        return sum(len(self.content(name)) for name in self.names())


@dataclass
class ToolContext:
    """Everything a tool handler may read or update during one call."""

    working_set: WorkingSet
    active_file: str | None = None
    knowledge_store: "KnowledgeStore | None" = None
    todos: list[TodoItem] = field(default_factory=list)
