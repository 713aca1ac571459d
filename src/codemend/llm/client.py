"""Model service clients for Anthropic and OpenAI-compatible endpoints.

Both clients speak the same small protocol: ``complete`` returns a whole
response, ``stream`` yields text and tool-call fragments as they arrive.
Tool declarations are passed in Anthropic ``input_schema`` form and
converted per provider.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal, Protocol

import openai
from anthropic import AsyncAnthropic
from pydantic import BaseModel, ConfigDict

from codemend.llm.exceptions import ModelConfigError, ModelResponseError
from codemend.llm.stream import RawToolCall
from codemend.models import ConversationTurn, MessageRole

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.1
MAX_API_TOKENS = 8192
HIGH_CAPACITY_MAX_TOKENS = 32768

ProviderName = Literal["auto", "anthropic", "openai"]


@dataclass
class ModelResponse:
    """A whole model response: text plus zero or more tool calls."""

    text: str = ""
    tool_calls: list[RawToolCall] = field(default_factory=list)


@dataclass
class StreamChunk:
    """One incremental piece of a streamed response."""

    kind: Literal["text", "tool_call"]
    text: str = ""
    index: int = 0
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


class ModelClient(Protocol):
    """Anything that can answer a conversation with text and tool calls."""

    model: str

    async def complete(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> ModelResponse: ...

    def stream(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> AsyncIterator[StreamChunk]: ...


def to_openai_tool(schema: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": schema["name"],
            "description": schema.get("description", ""),
            "parameters": schema.get("input_schema", {}),
        },
    }


# ---------------------------------------------------------------------------
# OpenAI-compatible
# ---------------------------------------------------------------------------


def to_openai_messages(system: str, messages: list[ConversationTurn]) -> list[dict[str, Any]]:
    """Convert conversation turns to chat-completions messages."""
    converted: list[dict[str, Any]] = [{"role": "system", "content": system}]
    for turn in messages:
        if turn.role == MessageRole.TOOL:
            converted.append(
                {"role": "tool", "tool_call_id": turn.tool_call_id or "", "content": turn.text}
            )
        elif turn.role == MessageRole.ASSISTANT and turn.tool_invocations:
            converted.append(
                {
                    "role": "assistant",
                    "content": turn.text or None,
                    "tool_calls": [
                        {
                            "id": invocation.id,
                            "type": "function",
                            "function": {
                                "name": invocation.name,
                                "arguments": json.dumps(invocation.arguments),
                            },
                        }
                        for invocation in turn.tool_invocations
                    ],
                }
            )
        else:
            converted.append({"role": turn.role.value, "content": turn.text})
    return converted


class OpenAIChatClient:
    """Chat-completions client for OpenAI and any compatible endpoint."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_OPENAI_MODEL,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self._client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    def _request_kwargs(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(system, messages),
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = [to_openai_tool(schema) for schema in tools]
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def complete(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> ModelResponse:
        response = await self._client.chat.completions.create(
            **self._request_kwargs(system, messages, tools, max_tokens)
        )
        if not response.choices:
            raise ModelResponseError("Model service returned no choices")
        message = response.choices[0].message
        calls = [
            RawToolCall(
                id=call.id,
                name=call.function.name,
                arguments=call.function.arguments,
            )
            for call in (getattr(message, "tool_calls", None) or [])
            if getattr(call, "type", "function") == "function"
        ]
        return ModelResponse(text=message.content or "", tool_calls=calls)

    async def stream(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> AsyncIterator[StreamChunk]:
        response = await self._client.chat.completions.create(
            stream=True, **self._request_kwargs(system, messages, tools, max_tokens)
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield StreamChunk(kind="text", text=delta.content)
            for call in getattr(delta, "tool_calls", None) or []:
                function = call.function
                yield StreamChunk(
                    kind="tool_call",
                    index=call.index,
                    id=call.id,
                    name=function.name if function else None,
                    arguments=function.arguments if function else None,
                )


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


def _append_message(converted: list[dict[str, Any]], role: str, blocks: list[dict]) -> None:
    # Consecutive same-role messages are merged into one content list
    if converted and converted[-1]["role"] == role:
        converted[-1]["content"].extend(blocks)
    else:
        converted.append({"role": role, "content": list(blocks)})


def to_anthropic_messages(messages: list[ConversationTurn]) -> list[dict[str, Any]]:
    """Convert conversation turns to Messages API content blocks."""
    converted: list[dict[str, Any]] = []
    for turn in messages:
        if turn.role == MessageRole.SYSTEM:
            continue
        if turn.role == MessageRole.TOOL:
            _append_message(
                converted,
                "user",
                [
                    {
                        "type": "tool_result",
                        "tool_use_id": turn.tool_call_id or "",
                        "content": turn.text,
                    }
                ],
            )
            continue
        blocks: list[dict[str, Any]] = []
        if turn.text:
            blocks.append({"type": "text", "text": turn.text})
        for invocation in turn.tool_invocations:
            blocks.append(
                {
                    "type": "tool_use",
                    "id": invocation.id,
                    "name": invocation.name,
                    "input": invocation.arguments,
                }
            )
        if blocks:
            _append_message(converted, turn.role.value, blocks)
    return converted


class AnthropicChatClient:
    """Messages API client for Anthropic models."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self._client = client or AsyncAnthropic(api_key=api_key)

    def _request_kwargs(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "system": system,
            "messages": to_anthropic_messages(messages),
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = tools
        return kwargs

    async def complete(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> ModelResponse:
        response = await self._client.messages.create(
            **self._request_kwargs(system, messages, tools, max_tokens)
        )
        text_parts: list[str] = []
        calls: list[RawToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                calls.append(RawToolCall(id=block.id, name=block.name, arguments=block.input))
        return ModelResponse(text="".join(text_parts), tool_calls=calls)

    async def stream(
        self,
        system: str,
        messages: list[ConversationTurn],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
    ) -> AsyncIterator[StreamChunk]:
        events = await self._client.messages.create(
            stream=True, **self._request_kwargs(system, messages, tools, max_tokens)
        )
        async for event in events:
            if event.type == "content_block_start":
                block = event.content_block
                if block.type == "tool_use":
                    yield StreamChunk(
                        kind="tool_call", index=event.index, id=block.id, name=block.name
                    )
            elif event.type == "content_block_delta":
                delta = event.delta
                if delta.type == "text_delta":
                    yield StreamChunk(kind="text", text=delta.text)
                elif delta.type == "input_json_delta":
                    yield StreamChunk(
                        kind="tool_call", index=event.index, arguments=delta.partial_json
                    )


# ---------------------------------------------------------------------------
# Settings and factory
# ---------------------------------------------------------------------------


class LLMSettings(BaseModel):
    """Provider, model and credentials for the model service."""

    model_config = ConfigDict(frozen=False)

    provider: ProviderName = "auto"
    model: str | None = None
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    base_url: str | None = None
    temperature: float = DEFAULT_TEMPERATURE

    @classmethod
    def from_env(cls, **overrides: Any) -> "LLMSettings":
        """Build settings from explicit values, falling back to the environment.

        Args:
            **overrides: Field values that take precedence. ``None`` values are
                ignored so CLI flags that were not given do not mask env vars.

        Returns:
            LLMSettings populated from overrides then environment variables.
        """
        values: dict[str, Any] = {
            "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY"),
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "base_url": os.getenv("CODEMEND_BASE_URL"),
            "model": os.getenv("CODEMEND_MODEL"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**{key: value for key, value in values.items() if value is not None})

    def resolve_provider(self) -> Literal["anthropic", "openai"]:
        """Pick the concrete provider, preferring Anthropic when its key exists.

        Raises:
            ModelConfigError: If the chosen provider has no credentials.
        """
        if self.provider == "anthropic":
            if not self.anthropic_api_key:
                raise ModelConfigError("No Anthropic API key found for provider 'anthropic'.")
            return "anthropic"
        if self.provider == "openai":
            if not (self.openai_api_key or self.base_url):
                raise ModelConfigError("No OpenAI API key found for provider 'openai'.")
            return "openai"
        if self.anthropic_api_key:
            return "anthropic"
        if self.openai_api_key or self.base_url:
            return "openai"
        raise ModelConfigError(
            "No Anthropic or OpenAI API key found. "
            "Provide via ANTHROPIC_API_KEY or OPENAI_API_KEY env vars."
        )

    def resolve_model(self, provider: str) -> str:
        if not self.model:
            return DEFAULT_ANTHROPIC_MODEL if provider == "anthropic" else DEFAULT_OPENAI_MODEL
        if provider == "openai" and self.model.startswith("claude-") and not self.base_url:
            return DEFAULT_OPENAI_MODEL
        return self.model


def create_model_client(settings: LLMSettings) -> ModelClient:
    """Construct the client for the resolved provider.

    Raises:
        ModelConfigError: If no provider can be resolved.
    """
    provider = settings.resolve_provider()
    model = settings.resolve_model(provider)
    logger.info("Using %s model %s", provider, model)
    if provider == "anthropic":
        return AnthropicChatClient(
            api_key=settings.anthropic_api_key,
            model=model,
            temperature=settings.temperature,
        )
    # Local OpenAI-compatible servers accept any key
    return OpenAIChatClient(
        api_key=settings.openai_api_key or "not-needed",
        model=model,
        base_url=settings.base_url,
        temperature=settings.temperature,
    )
