"""Contracts for the external systems LLM and Tool nodes call."""
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class LLMUsage(BaseModel):
    """Token usage information."""

    tokens: int = Field(default=0, description="Total tokens consumed")


class LLMResponse(BaseModel):
    """Result of a single LLM call."""

    content: str = Field(..., description="Generated text")
    model: str = Field(..., description="Model that produced the text")
    usage: LLMUsage = Field(default_factory=LLMUsage, description="Token usage")


@runtime_checkable
class LLMClient(Protocol):
    """LLM-call collaborator."""

    def call(self, prompt: str, model: str) -> LLMResponse:
        """
        Send ``prompt`` to ``model``.

        Raises:
            Exception: any failure, including timeouts; the message is
                surfaced verbatim as the execution error
        """
        ...


@runtime_checkable
class ToolInvoker(Protocol):
    """Tool-invocation collaborator."""

    def invoke(self, tool_name: str, arguments: Any) -> Any:
        """
        Invoke ``tool_name`` with already-resolved ``arguments``.

        Raises:
            Exception: unknown tool or invocation failure
        """
        ...
