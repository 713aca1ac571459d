"""State definition for the LangGraph turn loop."""

import operator
from typing import Annotated, TypedDict

from codemend.models import (
    ConversationTurn,
    DetectedError,
    FileDiff,
    KnowledgeEntry,
    LoopStatus,
    ToolInvocation,
)

MAX_TURNS = 5


class TurnState(TypedDict):
    """State for the turn loop.

    Fields with Annotated[list, operator.add] reducers accumulate across nodes.
    All other fields use default overwrite semantics.
    """

    # Conversation sent to the model
    system: str
    messages: list[ConversationTurn]

    # Loop control
    turn: int
    max_turns: int
    model_calls: int
    status: LoopStatus
    pending: list[ToolInvocation]
    limit_reached: bool

    # Accumulated results (accumulating reducers)
    text_parts: Annotated[list[str], operator.add]
    invocations: Annotated[list[ToolInvocation], operator.add]
    diffs: Annotated[list[FileDiff], operator.add]
    errors: Annotated[list[DetectedError], operator.add]
    saved_knowledge: Annotated[list[KnowledgeEntry], operator.add]

    # Terminal failure text
    error: str | None


def make_initial_state(
    system: str,
    messages: list[ConversationTurn],
    max_turns: int = MAX_TURNS,
) -> TurnState:
    """Create the initial state for one orchestration call.

    Args:
        system: Assembled system prompt.
        messages: Recent history followed by the new user message.
        max_turns: Turn budget, clamped to 1..MAX_TURNS.

    Returns:
        TurnState dict with all fields initialised to defaults.
    """
    clamped_turns = max(1, min(max_turns, MAX_TURNS))
    return {
        "system": system,
        "messages": list(messages),
        "turn": 0,
        "max_turns": clamped_turns,
        "model_calls": 0,
        "status": LoopStatus.AWAITING_MODEL,
        "pending": [],
        "limit_reached": False,
        "text_parts": [],
        "invocations": [],
        "diffs": [],
        "errors": [],
        "saved_knowledge": [],
        "error": None,
    }
