"""External collaborators invoked by LLM and Tool nodes."""
from vibeflow.collaborators.base import LLMClient, LLMResponse, LLMUsage, ToolInvoker
from vibeflow.collaborators.llm import (
    AnthropicLLMClient,
    EchoLLMClient,
    LLMCallError,
    build_llm_client,
)
from vibeflow.collaborators.tools import (
    ToolInvocationError,
    ToolRegistry,
    default_tool_registry,
)

__all__ = [
    "AnthropicLLMClient",
    "build_llm_client",
    "default_tool_registry",
    "EchoLLMClient",
    "LLMCallError",
    "LLMClient",
    "LLMResponse",
    "LLMUsage",
    "ToolInvocationError",
    "ToolInvoker",
    "ToolRegistry",
]
