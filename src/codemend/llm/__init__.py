"""Model service clients, stream reassembly and argument repair."""

from codemend.llm.client import (
    HIGH_CAPACITY_MAX_TOKENS,
    MAX_API_TOKENS,
    AnthropicChatClient,
    LLMSettings,
    ModelClient,
    ModelResponse,
    OpenAIChatClient,
    StreamChunk,
    create_model_client,
)
from codemend.llm.exceptions import (
    ArgumentRepairError,
    ModelConfigError,
    ModelResponseError,
    ModelServiceError,
)
from codemend.llm.repair import repair_arguments
from codemend.llm.stream import (
    RawToolCall,
    StreamReconstructor,
    build_invocation,
    invocations_from_calls,
)

__all__ = [
    "HIGH_CAPACITY_MAX_TOKENS",
    "MAX_API_TOKENS",
    "AnthropicChatClient",
    "ArgumentRepairError",
    "LLMSettings",
    "ModelClient",
    "ModelConfigError",
    "ModelResponse",
    "ModelResponseError",
    "ModelServiceError",
    "OpenAIChatClient",
    "RawToolCall",
    "StreamChunk",
    "StreamReconstructor",
    "build_invocation",
    "create_model_client",
    "invocations_from_calls",
    "repair_arguments",
]
