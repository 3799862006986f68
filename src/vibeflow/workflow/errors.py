"""Workflow engine error taxonomy."""


class WorkflowError(Exception):
    """Base exception for workflow errors."""

    pass


class GraphError(WorkflowError):
    """Raised when a workflow graph cannot be traversed (checked before any node runs)."""

    pass


class NodeExecutionError(WorkflowError):
    """
    Raised when a single node fails.

    The message is the originating message, without node decoration,
    so it can be recorded verbatim as the execution error.
    """

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.node_id = node_id


class ProviderError(NodeExecutionError):
    """Raised when the LLM collaborator call fails or times out."""

    pass


class ToolError(NodeExecutionError):
    """Raised when a tool is unknown or its invocation fails."""

    pass


class InvalidCondition(NodeExecutionError):
    """Raised when a condition expression cannot be parsed or evaluated."""

    pass


class NotFound(WorkflowError):
    """Raised when a workflow or execution id is unknown."""

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} {item_id} not found")
        self.kind = kind
        self.item_id = item_id


class InvalidTransition(WorkflowError):
    """Raised when pause/resume/cancel is attempted from an illegal state."""

    def __init__(self, action: str, status: str):
        super().__init__(f"Cannot {action} an execution that is {status}")
        self.action = action
        self.status = status
