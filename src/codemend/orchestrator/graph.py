"""LangGraph turn loop: model node, tools node and the routing between them.

One canonical controller serves streaming and whole-response calls, with
and without tools; only the way one turn's model response is obtained
differs.
"""

import logging
from typing import Any, Awaitable, Callable

from langgraph.graph import END, START, StateGraph

from codemend.llm import (
    ModelClient,
    StreamReconstructor,
    invocations_from_calls,
)
from codemend.models import (
    ConversationTurn,
    KnowledgeEntry,
    LoopStatus,
    MessageRole,
    ToolInvocation,
)
from codemend.orchestrator.callbacks import CancellationToken, StreamCallbacks
from codemend.orchestrator.exceptions import GraphBuildError, OperationCancelledError
from codemend.orchestrator.state import TurnState
from codemend.recovery import RetryExhaustedError, RetryPolicy, call_with_retry
from codemend.tools import ToolContext, ToolExecutor

logger = logging.getLogger(__name__)

TurnResponse = tuple[str, list[ToolInvocation]]


def make_turn_caller(
    client: ModelClient,
    tools: list[dict[str, Any]] | None,
    max_tokens: int,
    callbacks: StreamCallbacks | None,
    streaming: bool,
) -> Callable[[TurnState], Awaitable[TurnResponse]]:
    """Factory: returns a coroutine function that obtains one model response.

    Streaming feeds text chunks to ``callbacks`` as they arrive and rebuilds
    tool calls from fragments; whole-response mode converts the returned
    calls directly.
    """
    callbacks = callbacks or StreamCallbacks()

    async def call_streaming(state: TurnState) -> TurnResponse:
        reconstructor = StreamReconstructor(on_status=callbacks.status)
        async for chunk in client.stream(state["system"], state["messages"], tools, max_tokens):
            if chunk.kind == "text":
                reconstructor.feed_text(chunk.text)
                callbacks.text(chunk.text)
            else:
                reconstructor.feed_tool_fragment(
                    chunk.index, chunk.id, chunk.name, chunk.arguments
                )
        return reconstructor.text, reconstructor.finish(state["turn"])

    async def call_whole(state: TurnState) -> TurnResponse:
        response = await client.complete(state["system"], state["messages"], tools, max_tokens)
        callbacks.text(response.text)
        return response.text, invocations_from_calls(response.tool_calls, state["turn"])

    return call_streaming if streaming else call_whole


def make_model_node(
    call_turn: Callable[[TurnState], Awaitable[TurnResponse]],
    retry_policy: RetryPolicy,
    cancel: CancellationToken,
    callbacks: StreamCallbacks | None = None,
    tools_enabled: bool = True,
    model_name: str | None = None,
    sleep: Callable[[float], Awaitable[object]] | None = None,
) -> Callable[[TurnState], Awaitable[dict]]:
    """Factory: returns a node closure that runs one model call.

    The closure:
    1. Races call_turn (wrapped in retry/backoff) against the cancel token
    2. Appends the assistant turn to messages
    3. Returns status EXECUTING_TOOLS with pending invocations, or DONE

    On cancellation: returns status ABORTED; nothing from this turn is kept.
    On exhausted retries: returns status FAILED with the classified errors.
    """
    callbacks = callbacks or StreamCallbacks()
    retry_kwargs: dict[str, Any] = {"policy": retry_policy, "model_name": model_name}
    if sleep is not None:
        retry_kwargs["sleep"] = sleep

    def on_retry(error, delay_ms: int) -> None:
        callbacks.status(f"Model call failed ({error.category.value}); retrying in {delay_ms} ms")

    async def model_node(state: TurnState) -> dict:
        logger.info("Turn %d: awaiting model", state["turn"])
        try:
            (text, invocations), retry_errors = await cancel.race(
                call_with_retry(lambda: call_turn(state), on_retry=on_retry, **retry_kwargs)
            )
        except OperationCancelledError:
            logger.info("Turn %d: cancelled", state["turn"])
            return {"status": LoopStatus.ABORTED, "pending": []}
        except RetryExhaustedError as exc:
            return {
                "status": LoopStatus.FAILED,
                "pending": [],
                "errors": exc.errors,
                "error": str(exc),
            }

        if not tools_enabled:
            invocations = []
        messages = list(state["messages"]) + [
            ConversationTurn(role=MessageRole.ASSISTANT, text=text, tool_invocations=invocations)
        ]
        update: dict[str, Any] = {
            "messages": messages,
            "model_calls": state["model_calls"] + 1,
            "text_parts": [text] if text else [],
            "errors": retry_errors,
            "pending": invocations,
        }
        if invocations:
            for invocation in invocations:
                callbacks.invocation(invocation)
            update["status"] = LoopStatus.EXECUTING_TOOLS
        else:
            update["status"] = LoopStatus.DONE
        return update

    return model_node


def make_tools_node(
    executor: ToolExecutor,
    tool_ctx: ToolContext,
    callbacks: StreamCallbacks | None = None,
) -> Callable[[TurnState], Awaitable[dict]]:
    """Factory: returns a node closure that executes the pending invocations.

    The closure:
    1. Runs executor.execute_batch (read-only fan-out, sequential mutations)
    2. Appends one tool turn per invocation, in declaration order
    3. Increments the turn; forces DONE with limit_reached at max_turns

    Tool failures are already tool output text; nothing here aborts the loop.
    """
    callbacks = callbacks or StreamCallbacks()

    async def tools_node(state: TurnState) -> dict:
        pending = state["pending"]
        logger.info("Turn %d: executing %d tool call(s)", state["turn"], len(pending))
        results = await executor.execute_batch(pending, tool_ctx)

        messages = list(state["messages"])
        diffs = []
        errors = []
        saved: list[KnowledgeEntry] = []
        for invocation, result in zip(pending, results):
            messages.append(
                ConversationTurn(
                    role=MessageRole.TOOL,
                    text=result.output,
                    tool_call_id=invocation.id,
                    tool_name=invocation.name,
                )
            )
            for diff in result.all_diffs():
                diffs.append(diff)
                callbacks.diff(diff)
            errors.extend(result.errors)
            entry = (result.metadata or {}).get("knowledge_entry")
            if entry is not None:
                saved.append(KnowledgeEntry.model_validate(entry))

        turn = state["turn"] + 1
        update: dict[str, Any] = {
            "messages": messages,
            "pending": [],
            "turn": turn,
            "invocations": list(pending),
            "diffs": diffs,
            "errors": errors,
            "saved_knowledge": saved,
        }
        if turn >= state["max_turns"]:
            logger.warning("Turn limit %d reached; stopping", state["max_turns"])
            update["status"] = LoopStatus.DONE
            update["limit_reached"] = True
        else:
            update["status"] = LoopStatus.AWAITING_MODEL
        return update

    return tools_node


def route_after_model(state: TurnState) -> str:
    """Router for the post-model conditional edge."""
    if state["status"] == LoopStatus.EXECUTING_TOOLS:
        return "tools"
    return "end"


def route_after_tools(state: TurnState) -> str:
    """Router for the post-tools conditional edge."""
    if state["status"] == LoopStatus.AWAITING_MODEL:
        return "model"
    return "end"


def recursion_limit(max_turns: int) -> int:
    """Superstep budget for one run: a model and a tools step per turn, plus slack."""
    return 2 * max_turns + 5


def build_graph(
    model_node: Callable[[TurnState], Awaitable[dict]],
    tools_node: Callable[[TurnState], Awaitable[dict]],
):
    """Build and compile the turn loop StateGraph.

    Edge topology:
      START -> model
      model -> conditional(route_after_model) -> {tools, END}
      tools -> conditional(route_after_tools) -> {model, END}

    No checkpointer (in-memory state only).

    Args:
        model_node: Node closure from make_model_node.
        tools_node: Node closure from make_tools_node.

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(TurnState)
        graph.add_node("model", model_node)
        graph.add_node("tools", tools_node)

        graph.add_edge(START, "model")
        graph.add_conditional_edges(
            "model",
            route_after_model,
            {"tools": "tools", "end": END},
        )
        graph.add_conditional_edges(
            "tools",
            route_after_tools,
            {"model": "model", "end": END},
        )
        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build turn loop graph: {exc}") from exc
