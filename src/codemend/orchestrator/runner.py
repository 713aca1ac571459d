"""Orchestrator: one entry point per call, streaming or not.

The host constructs one Orchestrator with its injected collaborators (model
client, knowledge store, task store) and calls ``run`` or ``run_stream``
per request. Nothing mutable is shared between calls except those stores.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from codemend.context import (
    DEFAULT_CONTEXT_THRESHOLD,
    ContextBundle,
    KnowledgeStore,
    TaskStore,
    build_context,
    build_messages,
    build_system_prompt,
    rank_knowledge,
)
from codemend.llm import HIGH_CAPACITY_MAX_TOKENS, MAX_API_TOKENS, ModelClient
from codemend.models import (
    AppMode,
    LoopStatus,
    OrchestratorRequest,
    OrchestratorResult,
    ToolName,
)
from codemend.orchestrator.aggregator import aggregate
from codemend.orchestrator.callbacks import CancellationToken, StreamCallbacks
from codemend.orchestrator.exceptions import RequestValidationError
from codemend.orchestrator.graph import (
    build_graph,
    make_model_node,
    make_tools_node,
    make_turn_caller,
    recursion_limit,
)
from codemend.orchestrator.state import MAX_TURNS, make_initial_state
from codemend.recovery import RetryPolicy
from codemend.tools import (
    READ_ONLY_TOOLS,
    TOOL_SCHEMAS,
    ToolContext,
    ToolExecutor,
    WorkingSet,
)

logger = logging.getLogger(__name__)

# Tools declared to the model per mode
_EXPLAIN_TOOLS = frozenset(READ_ONLY_TOOLS - {ToolName.SAVE_KNOWLEDGE.value})
_CHAT_TOOLS = frozenset({ToolName.SAVE_KNOWLEDGE.value})


def tools_for_mode(mode: AppMode) -> list[dict[str, Any]]:
    """Tool schemas the model may call in ``mode``."""
    if mode == AppMode.FIX:
        return list(TOOL_SCHEMAS)
    allowed = _EXPLAIN_TOOLS if mode == AppMode.EXPLAIN else _CHAT_TOOLS
    return [schema for schema in TOOL_SCHEMAS if schema["name"] in allowed]


class Orchestrator:
    """Drives a bounded tool-calling exchange with the model service."""

    def __init__(
        self,
        client: ModelClient | None,
        knowledge_store: KnowledgeStore | None = None,
        task_store: TaskStore | None = None,
        executor: ToolExecutor | None = None,
        retry_policy: RetryPolicy | None = None,
        max_turns: int = MAX_TURNS,
        tools_enabled: bool = True,
        context_threshold: int = DEFAULT_CONTEXT_THRESHOLD,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            client: Model service client. None is accepted so that a missing
                configuration is reported per call as a validation error.
            knowledge_store: Knowledge base used when a request carries no
                knowledge snapshot; receives saved entries and usage counts.
            task_store: Task list used when a request carries no todos; the
                updated list is written back after each call.
            executor: Tool executor (defaults to all catalog handlers).
            retry_policy: Retry/backoff policy for model calls.
            max_turns: Turn budget, clamped to 1..MAX_TURNS.
            tools_enabled: When False, no tools are declared or executed.
            context_threshold: Character count above which context is reduced.
            sleep: Awaitable sleep for retry backoff, injectable for tests.
        """
        self.client = client
        self.knowledge_store = knowledge_store
        self.task_store = task_store
        self.executor = executor or ToolExecutor()
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_turns = max(1, min(max_turns, MAX_TURNS))
        self.tools_enabled = tools_enabled
        self.context_threshold = context_threshold
        self.sleep = sleep

    def _validate(self, request: OrchestratorRequest) -> ModelClient:
        if self.client is None:
            raise RequestValidationError("No model service is configured")
        if not getattr(self.client, "model", None):
            raise RequestValidationError("No model is selected")
        if not request.message or not request.message.strip():
            raise RequestValidationError("Request message is empty")
        return self.client

    def _knowledge(self, request: OrchestratorRequest):
        if request.knowledge is not None:
            entries = request.knowledge
        elif self.knowledge_store is not None:
            entries = self.knowledge_store.get_all()
        else:
            entries = []
        ranked = rank_knowledge(entries, request.message)
        if ranked and self.knowledge_store is not None:
            self.knowledge_store.record_usage([item.entry.id for item in ranked])
        return ranked

    def _context(self, request: OrchestratorRequest) -> ContextBundle | None:
        if request.mode == AppMode.CHAT:
            return None
        return build_context(
            request.files,
            request.message,
            active_file=request.active_file,
            summary=request.project_summary,
            use_compression=request.use_compression,
            threshold=self.context_threshold,
        )

    def _executor_for(self, tools: list[dict[str, Any]]) -> ToolExecutor:
        allowed = {schema["name"] for schema in tools}
        return ToolExecutor(
            handlers={
                name: handler
                for name, handler in self.executor.handlers.items()
                if name in allowed
            },
            max_read_workers=self.executor.max_read_workers,
            autofix_enabled=self.executor.autofix_enabled,
        )

    async def _run(
        self,
        request: OrchestratorRequest,
        callbacks: StreamCallbacks | None,
        cancel: CancellationToken | None,
        streaming: bool,
    ) -> OrchestratorResult:
        client = self._validate(request)
        cancel = cancel or CancellationToken()

        context = self._context(request)
        ranked = self._knowledge(request)
        todos = list(request.todos)
        if not todos and self.task_store is not None:
            todos = self.task_store.get_all()
        tools = tools_for_mode(request.mode) if self.tools_enabled else []

        system = build_system_prompt(
            request.mode,
            request.role,
            context,
            ranked,
            todos,
            tools_enabled=bool(tools),
        )
        tool_ctx = ToolContext(
            working_set=WorkingSet(request.files),
            active_file=request.active_file,
            knowledge_store=self.knowledge_store,
            todos=todos,
        )
        max_tokens = HIGH_CAPACITY_MAX_TOKENS if request.high_capacity else MAX_API_TOKENS

        call_turn = make_turn_caller(client, tools or None, max_tokens, callbacks, streaming)
        graph = build_graph(
            make_model_node(
                call_turn,
                self.retry_policy,
                cancel,
                callbacks=callbacks,
                tools_enabled=bool(tools),
                model_name=client.model,
                sleep=self.sleep,
            ),
            make_tools_node(self._executor_for(tools), tool_ctx, callbacks=callbacks),
        )
        initial = make_initial_state(system, build_messages(request), self.max_turns)
        final = await graph.ainvoke(
            initial, config={"recursion_limit": recursion_limit(self.max_turns)}
        )

        result = aggregate(
            final,
            compression_used=context.compressed if context is not None else False,
            todos=tool_ctx.todos,
        )
        if self.task_store is not None and result.status != LoopStatus.ABORTED:
            self.task_store.replace_all(result.todos)
        logger.info(
            "Finished with status %s after %d turn(s): %d diff(s), %d error(s)",
            result.status.value,
            result.turns,
            len(result.diffs),
            len(result.errors),
        )
        return result

    async def run(
        self,
        request: OrchestratorRequest,
        cancel: CancellationToken | None = None,
    ) -> OrchestratorResult:
        """Run one whole-response orchestration call.

        Args:
            request: Per-call inputs.
            cancel: Optional cancellation token.

        Returns:
            OrchestratorResult. FAILED and ABORTED results still carry what
            earlier turns produced.

        Raises:
            RequestValidationError: If the call cannot run at all.
        """
        return await self._run(request, None, cancel, streaming=False)

    async def run_stream(
        self,
        request: OrchestratorRequest,
        callbacks: StreamCallbacks,
        cancel: CancellationToken | None = None,
    ) -> OrchestratorResult | None:
        """Run one streaming orchestration call, reporting through callbacks.

        Exactly one terminal callback fires: ``on_error`` for validation
        failures and exhausted model retries, ``on_complete`` otherwise
        (including cancellation, which is not an error).

        Returns:
            The result, or None if the request failed validation.
        """
        try:
            result = await self._run(request, callbacks, cancel, streaming=True)
        except RequestValidationError as exc:
            logger.error("Request rejected: %s", exc)
            if callbacks.on_error is not None:
                callbacks.on_error(str(exc))
            return None

        if result.status == LoopStatus.FAILED:
            if callbacks.on_error is not None:
                callbacks.on_error(result.error or "Model call failed")
        elif callbacks.on_complete is not None:
            callbacks.on_complete(result)
        return result


def run_sync(orchestrator: Orchestrator, request: OrchestratorRequest) -> OrchestratorResult:
    """Convenience wrapper for synchronous hosts."""
    return asyncio.run(orchestrator.run(request))
