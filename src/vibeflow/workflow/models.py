"""
Workflow Models - graph and run-record structures.

A workflow is an ordered list of typed nodes plus an ordered list of
directed edges. Definition order is the only ordering the engine relies on.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from .errors import GraphError


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class NodeKind(str, Enum):
    """Closed set of node kinds."""
    INPUT = "input"
    OUTPUT = "output"
    LLM = "llm"
    TOOL = "tool"
    CONDITION = "condition"


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class NodePosition(BaseModel):
    """Node position in the editor canvas. Never interpreted by the engine."""
    x: float = 0
    y: float = 0


class Node(BaseModel):
    """
    A node in a workflow.

    Accepts both the flat form ``{"id", "kind", "label", "config"}`` and the
    editor form ``{"id", "type", "data": {"label", "config"}}``.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Node ID (unique within workflow)")
    kind: NodeKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
        description="Node kind",
    )
    position: NodePosition = Field(default_factory=NodePosition)
    label: str = Field("", description="Display name")
    description: Optional[str] = Field(None, description="Node notes")
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten_editor_data(cls, data: Any) -> Any:
        """Lift ``data.label``/``data.config`` to the top level."""
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = dict(data)
            nested = data.pop("data")
            for key in ("label", "description", "config"):
                if key in nested and key not in data:
                    data[key] = nested[key]
        return data

    @property
    def display_name(self) -> str:
        return self.label or self.id


class Edge(BaseModel):
    """
    Directed connection between two nodes.

    Example: {"id": "e1", "source": "input-1", "target": "llm-1"}
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Edge ID")
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    kind: str = Field(
        "default",
        validation_alias=AliasChoices("kind", "type"),
        description="Edge kind (reserved for branch labelling)",
    )
    data: Optional[Dict[str, Any]] = Field(None, description="Opaque edge metadata")


class WorkflowDefinition(BaseModel):
    """
    Workflow as submitted by a caller.

    The manager assigns ``id`` and timestamps when it stores one.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field("Unnamed Workflow", description="Workflow name")
    description: str = Field("", description="Workflow description")
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    published: bool = Field(False, description="Is workflow published?")
    author: str = Field("", description="Workflow author")
    tags: List[str] = Field(default_factory=list)
    version: str = Field("1.0.0", description="Workflow version")


class WorkflowPatch(BaseModel):
    """Partial update of a workflow; unset fields are left alone."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    nodes: Optional[List[Node]] = None
    edges: Optional[List[Edge]] = None
    published: Optional[bool] = None
    author: Optional[str] = None
    tags: Optional[List[str]] = None
    version: Optional[str] = None


class Workflow(WorkflowDefinition):
    """
    Complete, stored workflow.

    Serialized with camelCase timestamps (``createdAt``/``updatedAt``).
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., description="Workflow ID")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def start_nodes(self) -> List[Node]:
        """
        Get nodes that have no incoming edge (entry points), in definition order.
        """
        targets = {edge.target for edge in self.edges}
        return [node for node in self.nodes if node.id not in targets]

    def outgoing_edges(self, node_id: str) -> List[Edge]:
        """Edges leaving ``node_id`` in definition order."""
        return [edge for edge in self.edges if edge.source == node_id]

    def incoming_edges(self, node_id: str) -> List[Edge]:
        """Edges entering ``node_id`` in definition order."""
        return [edge for edge in self.edges if edge.target == node_id]

    def validate_graph(self) -> None:
        """
        Check structural invariants.

        Raises:
            GraphError: on duplicate node ids or edges referencing unknown nodes
        """
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise GraphError(f"Duplicate node id: {node.id}")
            seen.add(node.id)

        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in seen:
                    raise GraphError(
                        f"Edge {edge.id} references unknown node: {end}"
                    )


class WorkflowExecution(BaseModel):
    """
    Run record for one execution of a workflow.

    Mutated only by the engine while running; pause/resume/cancel go
    through the execution's RunControl.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Execution ID")
    workflow_id: str = Field(..., alias="workflowId")
    status: ExecutionStatus = Field(ExecutionStatus.RUNNING)
    current_step: str = Field("", alias="currentStep")
    results: Dict[str, Any] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow, alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    error: Optional[str] = None

    def log(self, line: str) -> None:
        """Append a trace line."""
        self.logs.append(line)


__all__ = [
    "Edge",
    "ExecutionStatus",
    "Node",
    "NodeKind",
    "NodePosition",
    "Workflow",
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowPatch",
    "utcnow",
]
