"""
Workflow - directed-graph execution of typed nodes.

This package provides:
- Workflow / Node / Edge: graph model
- interpolate / evaluate_condition: template and condition resolver
- NodeRunner: per-kind node executors
- WorkflowEngine: work-list traversal producing a WorkflowExecution
- WorkflowManager: thread-safe catalog and execution registry
"""

from .engine import JoinPolicy, RunControl, WorkflowEngine
from .errors import (
    GraphError,
    InvalidCondition,
    InvalidTransition,
    NodeExecutionError,
    NotFound,
    ProviderError,
    ToolError,
    WorkflowError,
)
from .expressions import evaluate_condition, interpolate
from .manager import WorkflowManager
from .models import (
    Edge,
    ExecutionStatus,
    Node,
    NodeKind,
    Workflow,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowPatch,
)
from .nodes import NodeRunner

__all__ = [
    # Models
    "Edge",
    "ExecutionStatus",
    "Node",
    "NodeKind",
    "Workflow",
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowPatch",
    # Resolver
    "evaluate_condition",
    "interpolate",
    # Execution
    "JoinPolicy",
    "NodeRunner",
    "RunControl",
    "WorkflowEngine",
    "WorkflowManager",
    # Errors
    "GraphError",
    "InvalidCondition",
    "InvalidTransition",
    "NodeExecutionError",
    "NotFound",
    "ProviderError",
    "ToolError",
    "WorkflowError",
]
