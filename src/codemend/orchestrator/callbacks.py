"""Streaming callbacks and the cancellation token."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from codemend.models import FileDiff, OrchestratorResult, ToolInvocation
from codemend.orchestrator.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StreamCallbacks:
    """Hooks fired while a streaming orchestration call runs.

    Exactly one of ``on_complete`` or ``on_error`` fires, once, at the end.
    """

    on_text: Callable[[str], None] | None = None
    on_invocation: Callable[[ToolInvocation], None] | None = None
    on_diff: Callable[[FileDiff], None] | None = None
    on_status: Callable[[str], None] | None = None
    on_complete: Callable[[OrchestratorResult], None] | None = None
    on_error: Callable[[str], None] | None = None

    def text(self, chunk: str) -> None:
        if self.on_text is not None and chunk:
            self.on_text(chunk)

    def invocation(self, invocation: ToolInvocation) -> None:
        if self.on_invocation is not None:
            self.on_invocation(invocation)

    def diff(self, diff: FileDiff) -> None:
        if self.on_diff is not None:
            self.on_diff(diff)

    def status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)


class CancellationToken:
    """Cooperative cancellation for one orchestration call.

    Checked before and raced against every model call; tool execution is
    never interrupted. ``cancel`` must be called from the event loop's
    thread (use ``loop.call_soon_threadsafe`` from elsewhere).
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises:
            OperationCancelledError: If the token fired before completion.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError("Cancelled before the model call started")
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            waiter.cancel()
            return task.result()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            logger.debug("Model call finished with %r after cancellation", exc)
        raise OperationCancelledError("Cancelled during the model call")
