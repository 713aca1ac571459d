"""LangGraph turn loop controller and result aggregation."""

from codemend.orchestrator.aggregator import aggregate, merge_diffs
from codemend.orchestrator.callbacks import CancellationToken, StreamCallbacks
from codemend.orchestrator.exceptions import (
    GraphBuildError,
    OperationCancelledError,
    OrchestratorError,
    RequestValidationError,
)
from codemend.orchestrator.graph import build_graph
from codemend.orchestrator.runner import Orchestrator, run_sync, tools_for_mode
from codemend.orchestrator.state import MAX_TURNS, TurnState, make_initial_state

__all__ = [
    "MAX_TURNS",
    "CancellationToken",
    "GraphBuildError",
    "OperationCancelledError",
    "Orchestrator",
    "OrchestratorError",
    "RequestValidationError",
    "StreamCallbacks",
    "TurnState",
    "aggregate",
    "build_graph",
    "make_initial_state",
    "merge_diffs",
    "run_sync",
    "tools_for_mode",
]
