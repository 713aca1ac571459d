"""Knowledge and task-list stores injected by the host.

Reads may happen concurrently; writes are serialized at the store
boundary with a lock, since save_knowledge calls can start concurrently
within one turn.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from codemend.models import KnowledgeEntry, TodoItem

logger = logging.getLogger(__name__)


class KnowledgeStore(Protocol):
    """Persistent knowledge base shared across orchestration calls."""

    def get_all(self) -> list[KnowledgeEntry]: ...

    def append(self, entry: KnowledgeEntry) -> None: ...

    def record_usage(self, entry_ids: list[str]) -> None: ...


class TaskStore(Protocol):
    """Persistent project task list."""

    def get_all(self) -> list[TodoItem]: ...

    def replace_all(self, items: list[TodoItem]) -> None: ...


class InMemoryKnowledgeStore:
    """Process-local knowledge store."""

    def __init__(self, entries: list[KnowledgeEntry] | None = None):
        self._entries: list[KnowledgeEntry] = list(entries or [])
        self._lock = threading.Lock()

    def get_all(self) -> list[KnowledgeEntry]:
        return [entry.model_copy() for entry in self._entries]

    def append(self, entry: KnowledgeEntry) -> None:
        with self._lock:
            self._entries.append(entry)
        logger.info("Saved knowledge entry %s (%s)", entry.id, " ".join(entry.tags))

    def record_usage(self, entry_ids: list[str]) -> None:
        wanted = set(entry_ids)
        with self._lock:
            for entry in self._entries:
                if entry.id in wanted:
                    entry.usage_count += 1


class JsonKnowledgeStore:
    """Knowledge store backed by a JSON file holding a list of entries."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> list[KnowledgeEntry]:
        if not self.path.exists():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        return [KnowledgeEntry.model_validate(item) for item in raw]

    def _save(self, entries: list[KnowledgeEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [entry.model_dump(mode="json") for entry in entries]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def get_all(self) -> list[KnowledgeEntry]:
        with self._lock:
            return self._load()

    def append(self, entry: KnowledgeEntry) -> None:
        with self._lock:
            entries = self._load()
            entries.append(entry)
            self._save(entries)
        logger.info("Saved knowledge entry %s to %s", entry.id, self.path)

    def record_usage(self, entry_ids: list[str]) -> None:
        wanted = set(entry_ids)
        with self._lock:
            entries = self._load()
            for entry in entries:
                if entry.id in wanted:
                    entry.usage_count += 1
            self._save(entries)


class InMemoryTaskStore:
    """Process-local task list."""

    def __init__(self, items: list[TodoItem] | None = None):
        self._items: list[TodoItem] = list(items or [])
        self._lock = threading.Lock()

    def get_all(self) -> list[TodoItem]:
        return [item.model_copy() for item in self._items]

    def replace_all(self, items: list[TodoItem]) -> None:
        with self._lock:
            self._items = list(items)


class JsonTaskStore:
    """Task list backed by a JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def get_all(self) -> list[TodoItem]:
        with self._lock:
            if not self.path.exists():
                return []
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            return [TodoItem.model_validate(item) for item in raw]

    def replace_all(self, items: list[TodoItem]) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = [item.model_dump(mode="json") for item in items]
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info("Saved %d task(s) to %s", len(items), self.path)
