"""In-process tool registry used as the tool-invocation collaborator."""
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable

from vibeflow.observability import get_logger

logger = get_logger(__name__)

ToolFunc = Callable[[Any], Any]


class ToolInvocationError(Exception):
    """Raised when a tool is unknown, fails, or times out."""

    pass


class ToolRegistry:
    """
    Registry mapping tool names to callables.

    Each tool receives the resolved ``arguments`` value of the Tool node.
    """

    def __init__(self, timeout_s: float | None = None, max_workers: int = 4):
        """
        Initialize tool registry.

        Args:
            timeout_s: Per-call timeout in seconds (None disables it)
            max_workers: Threads used to run tools under a timeout
        """
        self._tools: dict[str, ToolFunc] = {}
        self._timeout_s = timeout_s
        self._max_workers = max_workers
        self._pool: ThreadPoolExecutor | None = None

    def register(self, name: str, func: ToolFunc) -> None:
        """
        Register a tool.

        Args:
            name: Tool name referenced by ``config.toolName``
            func: Callable taking the resolved arguments
        """
        self._tools[name] = func
        logger.info(f"Tool registered: {name}")

    def tool(self, name: str) -> Callable[[ToolFunc], ToolFunc]:
        """Decorator form of :meth:`register`."""

        def decorator(func: ToolFunc) -> ToolFunc:
            self.register(name, func)
            return func

        return decorator

    def list_tools(self) -> list[str]:
        """List registered tool names."""
        return list(self._tools.keys())

    def invoke(self, tool_name: str, arguments: Any) -> Any:
        """
        Invoke a tool by name.

        Raises:
            ToolInvocationError: If the tool is unknown, raises, or times out
        """
        func = self._tools.get(tool_name)
        if func is None:
            raise ToolInvocationError(f"Unknown tool: {tool_name}")

        if self._timeout_s is None:
            return self._call(tool_name, func, arguments)

        future = self._get_pool().submit(self._call, tool_name, func, arguments)
        try:
            return future.result(timeout=self._timeout_s)
        except FutureTimeoutError as e:
            future.cancel()
            raise ToolInvocationError(
                f"Tool {tool_name} timed out after {self._timeout_s}s"
            ) from e

    def close(self) -> None:
        """Shut down the timeout worker pool."""
        if self._pool is not None:
            self._pool.shutdown(wait=False)
            self._pool = None

    def _get_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="vibeflow-tool",
            )
        return self._pool

    @staticmethod
    def _call(tool_name: str, func: ToolFunc, arguments: Any) -> Any:
        try:
            return func(arguments)
        except ToolInvocationError:
            raise
        except Exception as e:
            raise ToolInvocationError(f"Tool {tool_name} failed: {e}") from e


def echo(arguments: Any) -> Any:
    """Return the arguments unchanged."""
    return arguments


def clean_data(arguments: Any) -> Any:
    """Trim whitespace and collapse runs of blanks; drop empty lines."""
    if isinstance(arguments, str):
        lines = (re.sub(r"[ \t]+", " ", line).strip() for line in arguments.splitlines())
        return "\n".join(line for line in lines if line)
    if isinstance(arguments, dict):
        return {
            key: clean_data(value)
            for key, value in arguments.items()
            if value not in (None, "")
        }
    if isinstance(arguments, list):
        return [clean_data(item) for item in arguments if item not in (None, "")]
    return arguments


def default_tool_registry(timeout_s: float | None = None) -> ToolRegistry:
    """Registry preloaded with the built-in ``echo`` and ``data-cleaner`` tools."""
    registry = ToolRegistry(timeout_s=timeout_s)
    registry.register("echo", echo)
    registry.register("data-cleaner", clean_data)
    return registry
