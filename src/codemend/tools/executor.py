"""Tool dispatch for one orchestration call.

Runs validated tool invocations against the working view, turns every
failure into tool output text, attempts one parameter auto-fix, and splits
a turn's batch into concurrent read-only runs and sequential mutations.
"""

import asyncio
import logging
from typing import Callable

from pydantic import ValidationError

from codemend.llm.exceptions import ArgumentRepairError
from codemend.models import (
    TOOL_ARGUMENT_MODELS,
    ToolArguments,
    ToolExecutionResult,
    ToolInvocation,
    ToolName,
)
from codemend.recovery import classify_error
from codemend.tools import diagnostics, file_ops, task_ops
from codemend.tools.autofix import suggest_fix
from codemend.tools.exceptions import ToolError, UnknownToolError
from codemend.tools.schemas import TOOL_NAMES, is_read_only
from codemend.tools.workspace import ToolContext

logger = logging.getLogger(__name__)

MAX_READ_WORKERS = 8

ToolHandler = Callable[[ToolArguments, ToolContext], ToolExecutionResult]

DEFAULT_HANDLERS: dict[str, ToolHandler] = {
    ToolName.CREATE_FILE.value: file_ops.create_file,
    ToolName.UPDATE_FILE.value: file_ops.update_file,
    ToolName.DELETE_FILE.value: file_ops.delete_file,
    ToolName.LIST_FILES.value: file_ops.list_files,
    ToolName.SEARCH_FILES.value: file_ops.search_files,
    ToolName.READ_FILE.value: file_ops.read_file,
    ToolName.READ_FILE_LINES.value: file_ops.read_file_lines,
    ToolName.SAVE_KNOWLEDGE.value: task_ops.save_knowledge,
    ToolName.MANAGE_TASKS.value: task_ops.manage_tasks,
    ToolName.ANALYZE_DEPENDENCIES.value: diagnostics.analyze_dependencies,
    ToolName.SECURITY_SCAN.value: diagnostics.security_scan,
    ToolName.CODE_REVIEW.value: diagnostics.code_review,
    ToolName.ANALYZE_PERFORMANCE.value: diagnostics.analyze_performance,
}


def plan_batches(invocations: list[ToolInvocation]) -> list[list[int]]:
    """Group a turn's invocations into execution batches of indices.

    Consecutive read-only invocations share one concurrent batch; every
    mutating (or unknown) invocation is a batch of its own, so it starts
    only after everything declared before it has finished.
    """
    batches: list[list[int]] = []
    reading = False
    for idx, invocation in enumerate(invocations):
        if is_read_only(invocation.name):
            if not reading:
                batches.append([])
                reading = True
            batches[-1].append(idx)
        else:
            batches.append([idx])
            reading = False
    return batches


class ToolExecutor:
    """Executes tool invocations for one orchestration call."""

    def __init__(
        self,
        handlers: dict[str, ToolHandler] | None = None,
        max_read_workers: int = MAX_READ_WORKERS,
        autofix_enabled: bool = True,
    ):
        self.handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)
        self.max_read_workers = max(1, max_read_workers)
        self.autofix_enabled = autofix_enabled

    def _invoke(
        self,
        invocation: ToolInvocation,
        arguments: dict,
        ctx: ToolContext,
    ) -> ToolExecutionResult:
        handler = self.handlers.get(invocation.name)
        model = TOOL_ARGUMENT_MODELS.get(invocation.name)
        if handler is None or model is None:
            raise UnknownToolError(
                invocation.name, [name for name in TOOL_NAMES if name in self.handlers]
            )
        result = handler(model.model_validate(arguments), ctx)
        for diff in result.all_diffs():
            diff.invocation_id = invocation.id
        return result

    def _failure(
        self,
        invocation: ToolInvocation,
        message: str,
        errors: list,
    ) -> ToolExecutionResult:
        logger.warning("Tool %s (%s) failed: %s", invocation.name, invocation.id, message)
        return ToolExecutionResult(
            output=f"Error executing {invocation.name}: {message}",
            success=False,
            errors=errors,
        )

    def execute_one(self, invocation: ToolInvocation, ctx: ToolContext) -> ToolExecutionResult:
        """Run one invocation; never raises for tool-level failures.

        Args:
            invocation: The tool call to run.
            ctx: Working view, stores and task list for this call.

        Returns:
            The tool's result. Failures come back with ``success=False``,
            the error message as output and the classified errors attached.
        """
        if invocation.argument_error:
            error = classify_error(
                ArgumentRepairError(invocation.argument_error), tool_name=invocation.name
            )
            return self._failure(invocation, invocation.argument_error, [error])

        try:
            result = self._invoke(invocation, invocation.arguments, ctx)
        except (ToolError, ValidationError) as exc:
            return self._recover(invocation, exc, ctx)
        except Exception as exc:
            logger.exception("Unexpected failure in tool %s", invocation.name)
            error = classify_error(exc, tool_name=invocation.name)
            return self._failure(invocation, str(exc), [error])

        logger.info("Tool %s (%s) succeeded", invocation.name, invocation.id)
        return result

    def _recover(
        self,
        invocation: ToolInvocation,
        exc: Exception,
        ctx: ToolContext,
    ) -> ToolExecutionResult:
        first = classify_error(exc, tool_name=invocation.name, attempt=1)
        fix = None
        if self.autofix_enabled:
            ws = ctx.working_set
            fix = suggest_fix(
                invocation.name,
                invocation.arguments,
                exc,
                ws.names(),
                active_file=ctx.active_file,
                line_count=ws.line_count,
            )
        if fix is None:
            return self._failure(invocation, str(exc), [first])

        logger.info("Auto-fixing %s (%s): %s", invocation.name, invocation.id, fix.note)
        try:
            result = self._invoke(invocation, fix.arguments, ctx)
        except (ToolError, ValidationError) as retry_exc:
            second = classify_error(retry_exc, tool_name=invocation.name, attempt=2)
            message = f"{exc}\nAuto-fix ({fix.note}) also failed: {retry_exc}"
            return self._failure(invocation, message, [first, second])

        first.resolve("auto_fix", fix.note)
        result.output = f"[auto-fixed: {fix.note}]\n{result.output}"
        result.errors.insert(0, first)
        return result

    async def execute_batch(
        self,
        invocations: list[ToolInvocation],
        ctx: ToolContext,
    ) -> list[ToolExecutionResult]:
        """Run one turn's invocations and return results in declaration order.

        Read-only runs fan out to worker threads (bounded by
        ``max_read_workers``); mutations run one at a time in order.
        """
        results: dict[int, ToolExecutionResult] = {}
        semaphore = asyncio.Semaphore(self.max_read_workers)

        async def run_read(idx: int) -> None:
            async with semaphore:
                results[idx] = await asyncio.to_thread(self.execute_one, invocations[idx], ctx)

        for batch in plan_batches(invocations):
            if len(batch) == 1 and not is_read_only(invocations[batch[0]].name):
                results[batch[0]] = self.execute_one(invocations[batch[0]], ctx)
            else:
                await asyncio.gather(*(run_read(idx) for idx in batch))

        return [results[idx] for idx in range(len(invocations))]
