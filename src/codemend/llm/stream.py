"""Reassembly of streamed tool-call fragments into complete invocations."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from codemend.llm.exceptions import ArgumentRepairError
from codemend.llm.repair import repair_arguments
from codemend.models import ToolInvocation

logger = logging.getLogger(__name__)

MIN_ANNOUNCED_NAME_LENGTH = 3


@dataclass
class _Slot:
    """Growing state of one tool call, keyed by its stream index."""

    name: str = ""
    arguments: str = ""
    id: str | None = None
    announced: bool = False


@dataclass
class RawToolCall:
    """A complete but unparsed tool call as returned by a provider."""

    id: str | None
    name: str
    arguments: str | dict[str, Any] | None = None


def build_invocation(
    call_id: str | None,
    name: str,
    raw_arguments: str | dict[str, Any] | None,
    turn: int,
    index: int,
) -> ToolInvocation:
    """Repair the raw argument payload and wrap it as a ToolInvocation.

    Repair failures do not raise: the invocation keeps an empty argument map
    and records the failure in ``argument_error`` so the executor can feed it
    back to the model as that tool's output.
    """
    try:
        arguments = repair_arguments(raw_arguments)
        error = None
    except ArgumentRepairError as exc:
        logger.warning("Tool call %s (%s) has unusable arguments: %s", index, name, exc)
        arguments = {}
        error = str(exc)
    return ToolInvocation(
        id=call_id or f"call_{turn}_{index}",
        name=name,
        arguments=arguments,
        turn=turn,
        argument_error=error,
    )


def invocations_from_calls(calls: list[RawToolCall], turn: int) -> list[ToolInvocation]:
    """Convert a whole (non-streamed) response's tool calls into invocations."""
    return [
        build_invocation(call.id, call.name, call.arguments, turn, index)
        for index, call in enumerate(calls)
        if call.name
    ]


@dataclass
class StreamReconstructor:
    """Accumulates streamed text and tool-call fragments for one model turn.

    Fragments are concatenated strictly in arrival order per index. The
    optional ``on_status`` hook receives a "Calling <name>..." hint once per
    call, after its name has stopped growing; it is for progress display only.
    """

    on_status: Callable[[str], None] | None = None
    text_parts: list[str] = field(default_factory=list)
    _slots: dict[int, _Slot] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    def feed_text(self, chunk: str) -> None:
        if chunk:
            self.text_parts.append(chunk)

    def feed_tool_fragment(
        self,
        index: int,
        call_id: str | None = None,
        name: str | None = None,
        arguments: str | None = None,
    ) -> None:
        """Append one fragment of the tool call at ``index``.

        Args:
            index: Provider-assigned position of the call within the turn.
            call_id: Call id, usually only on the first fragment.
            name: Next piece of the tool name, if any.
            arguments: Next piece of the JSON argument string, if any.
        """
        slot = self._slots.setdefault(index, _Slot())
        if call_id and not slot.id:
            slot.id = call_id
        if name:
            slot.name += name
        else:
            self._maybe_announce(slot)
        if arguments:
            slot.arguments += arguments

    def _maybe_announce(self, slot: _Slot) -> None:
        if slot.announced or len(slot.name) <= MIN_ANNOUNCED_NAME_LENGTH:
            return
        slot.announced = True
        if self.on_status is not None:
            self.on_status(f"Calling {slot.name}...")

    def finish(self, turn: int) -> list[ToolInvocation]:
        """Close the stream and return its invocations in index order.

        Slots whose name never materialized are discarded.
        """
        invocations: list[ToolInvocation] = []
        for index in sorted(self._slots):
            slot = self._slots[index]
            if not slot.name:
                logger.debug("Discarding nameless tool call fragment at index %s", index)
                continue
            self._maybe_announce(slot)
            invocations.append(
                build_invocation(slot.id, slot.name, slot.arguments, turn, index)
            )
        return invocations
