"""
Node executors - one per node kind.

Executors read a node's config and the bindings visible to it, delegate any
I/O to the LLM/tool collaborators, and return the value the engine stores
under the node id. They never touch the run record.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

from vibeflow.collaborators.base import LLMClient, ToolInvoker
from vibeflow.observability import get_logger, with_execution_context

from .errors import InvalidCondition, NodeExecutionError, ProviderError, ToolError
from .expressions import evaluate_condition, interpolate, resolve
from .models import Node, NodeKind


logger = get_logger(__name__)

Bindings = Mapping[str, Any]

# NodeKind -> NodeRunner method name; checked for completeness below
_HANDLERS: Dict[NodeKind, str] = {
    NodeKind.INPUT: "run_input",
    NodeKind.OUTPUT: "run_output",
    NodeKind.LLM: "run_llm",
    NodeKind.TOOL: "run_tool",
    NodeKind.CONDITION: "run_condition",
}


def _error_message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class NodeRunner:
    """
    Dispatches a node to the executor for its kind.

    Usage:
        runner = NodeRunner(llm_client=EchoLLMClient(), tool_invoker=registry)
        value = runner.run(node, bindings)
    """

    def __init__(
        self,
        llm_client: LLMClient,
        tool_invoker: ToolInvoker,
        default_model: str = "gpt-4",
    ):
        """
        Initialize runner.

        Args:
            llm_client: LLM-call collaborator
            tool_invoker: Tool-invocation collaborator
            default_model: Model for LLM nodes that do not name one
        """
        self._llm = llm_client
        self._tools = tool_invoker
        self._default_model = default_model
        self._dispatch: Dict[NodeKind, Callable[[Node, Bindings], Any]] = {
            kind: getattr(self, name) for kind, name in _HANDLERS.items()
        }

    def run(self, node: Node, bindings: Bindings) -> Any:
        """
        Execute ``node`` against ``bindings``.

        Raises:
            NodeExecutionError: ProviderError, ToolError or InvalidCondition
                from the node; any other exception is wrapped
        """
        handler = self._dispatch[node.kind]
        try:
            return handler(node, bindings)
        except NodeExecutionError as exc:
            if exc.node_id is None:
                exc.node_id = node.id
            raise
        except Exception as exc:
            raise NodeExecutionError(_error_message(exc), node_id=node.id) from exc

    def run_input(self, node: Node, bindings: Bindings) -> Any:
        value = bindings.get(node.id)
        if value is not None:
            return value
        return node.config.get("defaultValue")

    def run_output(self, node: Node, bindings: Bindings) -> Any:
        value = bindings.get(node.id)
        if value is not None:
            return value
        return resolve(node.config.get("value"), bindings)

    def run_llm(self, node: Node, bindings: Bindings) -> Dict[str, Any]:
        prompt = interpolate(node.config.get("prompt", ""), bindings)
        model = node.config.get("model") or self._default_model

        logger.debug(
            "Calling LLM collaborator",
            extra=with_execution_context(node_id=node.id, node_kind="llm", model=model),
        )
        try:
            response = self._llm.call(prompt, model)
        except Exception as exc:
            raise ProviderError(_error_message(exc), node_id=node.id) from exc

        return {
            "content": response.content,
            "model": response.model,
            "usage": response.usage.model_dump(),
        }

    def run_tool(self, node: Node, bindings: Bindings) -> Dict[str, Any]:
        tool_name: Optional[str] = node.config.get("toolName")
        if not tool_name:
            raise ToolError("Tool node has no toolName", node_id=node.id)
        arguments = resolve(node.config.get("arguments"), bindings)

        logger.debug(
            "Invoking tool collaborator",
            extra=with_execution_context(node_id=node.id, node_kind="tool", tool=tool_name),
        )
        try:
            result = self._tools.invoke(tool_name, arguments)
        except Exception as exc:
            raise ToolError(_error_message(exc), node_id=node.id) from exc

        return {"tool": tool_name, "arguments": arguments, "result": result}

    def run_condition(self, node: Node, bindings: Bindings) -> Dict[str, Any]:
        condition = node.config.get("condition")
        if condition is None:
            raise InvalidCondition("Invalid condition: <missing>", node_id=node.id)
        return evaluate_condition(condition, bindings)


_missing_kinds = set(NodeKind) - set(_HANDLERS)
if _missing_kinds:
    raise RuntimeError(f"No executor for node kinds: {sorted(k.value for k in _missing_kinds)}")


__all__ = ["NodeRunner"]
