import json

import pytest

from codemend.context import InMemoryKnowledgeStore, InMemoryTaskStore
from codemend.llm import ModelResponse, RawToolCall, StreamChunk
from codemend.models import ProjectFile
from codemend.tools import ToolContext, WorkingSet


class ScriptedModelClient:
    """Fake model client that replays scripted responses in order.

    Each script item is a ModelResponse or an exception to raise. Once the
    script runs out, a plain "Done." response is returned.
    """

    def __init__(self, responses, model: str = "fake-model", chunk_size: int = 4):
        self.model = model
        self.responses = list(responses)
        self.chunk_size = chunk_size
        self.calls: list[dict] = []

    def _next(self, system, messages, tools, max_tokens):
        self.calls.append(
            {
                "system": system,
                "messages": list(messages),
                "tools": tools,
                "max_tokens": max_tokens,
            }
        )
        item = self.responses.pop(0) if self.responses else ModelResponse(text="Done.")
        if isinstance(item, BaseException):
            raise item
        return item

    async def complete(self, system, messages, tools, max_tokens):
        return self._next(system, messages, tools, max_tokens)

    async def stream(self, system, messages, tools, max_tokens):
        response = self._next(system, messages, tools, max_tokens)
        size = self.chunk_size
        for start in range(0, len(response.text), size):
            yield StreamChunk(kind="text", text=response.text[start:start + size])
        for index, call in enumerate(response.tool_calls):
            arguments = call.arguments
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments or {})
            yield StreamChunk(kind="tool_call", index=index, id=call.id, name=call.name[:3])
            yield StreamChunk(kind="tool_call", index=index, name=call.name[3:] or None)
            for start in range(0, len(arguments), size):
                yield StreamChunk(
                    kind="tool_call", index=index, arguments=arguments[start:start + size]
                )


def tool_call(name: str, arguments: dict | str | None = None, call_id: str | None = None):
    """Helper to build a raw tool call for scripted responses."""
    return RawToolCall(id=call_id, name=name, arguments=arguments)


@pytest.fixture
def sample_files():
    return [
        ProjectFile(
            name="src/app.ts",
            language="typescript",
            content=(
                "import { login } from './utils';\n"
                "\n"
                "export function start() {\n"
                "  return login('admin');\n"
                "}\n"
            ),
        ),
        ProjectFile(
            name="src/utils.ts",
            language="typescript",
            content="export function login(user: string) {\n  return user.length > 0;\n}\n",
        ),
        ProjectFile(name="README.md", language="markdown", content="# Demo project\n"),
        ProjectFile(name=".env", language="plaintext", content="API_KEY=abc123\n"),
    ]


@pytest.fixture
def knowledge_store():
    return InMemoryKnowledgeStore()


@pytest.fixture
def task_store():
    return InMemoryTaskStore()


@pytest.fixture
def tool_ctx(sample_files, knowledge_store):
    return ToolContext(
        working_set=WorkingSet(sample_files),
        active_file="src/app.ts",
        knowledge_store=knowledge_store,
    )


@pytest.fixture
def sleeps():
    """Records requested backoff sleeps without waiting."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep
