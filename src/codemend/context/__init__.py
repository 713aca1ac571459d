"""Context budgeting, knowledge ranking, stores and prompt assembly."""

from codemend.context.budget import (
    DEFAULT_CONTEXT_THRESHOLD,
    ContextBundle,
    ContextMode,
    build_context,
    find_relevant_files,
    score_file_relevance,
    select_context_mode,
    total_size,
)
from codemend.context.knowledge import (
    MAX_SURFACED_ENTRIES,
    RankedKnowledge,
    rank_knowledge,
    score_entry,
)
from codemend.context.prompts import build_messages, build_system_prompt
from codemend.context.stores import (
    InMemoryKnowledgeStore,
    InMemoryTaskStore,
    JsonKnowledgeStore,
    JsonTaskStore,
    KnowledgeStore,
    TaskStore,
)

__all__ = [
    "DEFAULT_CONTEXT_THRESHOLD",
    "MAX_SURFACED_ENTRIES",
    "ContextBundle",
    "ContextMode",
    "InMemoryKnowledgeStore",
    "InMemoryTaskStore",
    "JsonKnowledgeStore",
    "JsonTaskStore",
    "KnowledgeStore",
    "RankedKnowledge",
    "TaskStore",
    "build_context",
    "build_messages",
    "build_system_prompt",
    "find_relevant_files",
    "rank_knowledge",
    "score_entry",
    "score_file_relevance",
    "select_context_mode",
    "total_size",
]
