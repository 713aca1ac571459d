"""Knowledge and task-list tools."""

import logging
import uuid

from codemend.models import (
    KnowledgeEntry,
    KnowledgeScope,
    TodoItem,
    TodoStatus,
    ToolExecutionResult,
)
from codemend.models.tool_models import ManageTasksArgs, SaveKnowledgeArgs
from codemend.tools.exceptions import TaskNotFoundError, ToolArgumentError
from codemend.tools.workspace import ToolContext

logger = logging.getLogger(__name__)


def save_knowledge(args: SaveKnowledgeArgs, ctx: ToolContext) -> ToolExecutionResult:
    """Persist a knowledge entry through the injected store.

    The store serializes its own writes, so this handler may run concurrently
    with other read-only tools.
    """
    entry = KnowledgeEntry(
        id=f"k_{uuid.uuid4().hex[:10]}",
        tags=args.tags,
        content=args.content,
        scope=args.scope or KnowledgeScope.GLOBAL,
    )
    if not entry.tags:
        raise ToolArgumentError("save_knowledge requires at least one non-empty tag")
    if ctx.knowledge_store is not None:
        ctx.knowledge_store.append(entry)
    else:
        logger.debug("No knowledge store configured; entry %s is returned only", entry.id)
    return ToolExecutionResult(
        output=f"Saved knowledge {entry.id} with tags {' '.join(entry.tags)}.",
        metadata={"knowledge_entry": entry.model_dump(mode="json")},
    )


def _find_task(ctx: ToolContext, task_id: str | None) -> int:
    for idx, item in enumerate(ctx.todos):
        if item.id == task_id:
            return idx
    raise TaskNotFoundError(task_id, [item.id for item in ctx.todos])


def _todos_metadata(ctx: ToolContext) -> dict:
    return {"todos": [item.model_dump(mode="json") for item in ctx.todos]}


def manage_tasks(args: ManageTasksArgs, ctx: ToolContext) -> ToolExecutionResult:
    """Apply one add/update/complete/delete action to the call's task list.

    Args:
        args: Validated action record. ``task`` is required for "add";
            ``task_id`` for every other action.
        ctx: Tool context whose ``todos`` list is updated in place.

    Returns:
        Result whose metadata carries the full task list after the action.

    Raises:
        ToolArgumentError: If a required field for the action is missing.
        TaskNotFoundError: If ``task_id`` does not name a known task.
    """
    if args.action == "add":
        if not args.task:
            raise ToolArgumentError("manage_tasks action 'add' requires 'task'")
        item = TodoItem(
            id=f"task_{uuid.uuid4().hex[:8]}",
            task=args.task,
            status=args.status or TodoStatus.PENDING,
            phase=args.phase or "General",
        )
        ctx.todos.append(item)
        output = f"Added task {item.id}: {item.task}"
    else:
        if not args.task_id:
            raise ToolArgumentError(f"manage_tasks action '{args.action}' requires 'task_id'")
        idx = _find_task(ctx, args.task_id)
        item = ctx.todos[idx]
        if args.action == "delete":
            del ctx.todos[idx]
            output = f"Deleted task {item.id}: {item.task}"
        elif args.action == "complete":
            ctx.todos[idx] = item.model_copy(update={"status": TodoStatus.COMPLETED})
            output = f"Completed task {item.id}: {item.task}"
        else:
            updates = {
                key: value
                for key, value in (
                    ("task", args.task),
                    ("phase", args.phase),
                    ("status", args.status),
                )
                if value is not None
            }
            ctx.todos[idx] = item.model_copy(update=updates)
            output = f"Updated task {item.id}: {ctx.todos[idx].task}"

    logger.info("Task list action %s applied (%d tasks)", args.action, len(ctx.todos))
    return ToolExecutionResult(output=output, metadata=_todos_metadata(ctx))
