"""
Workflow Engine - traverses a workflow graph and fills in a run record.

Traversal is driven by an explicit work-list instead of recursion, so graph
depth never bounds the call stack and pause/cancel are checked between
every pair of node dispatches.
"""

from __future__ import annotations

import threading
import uuid
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from vibeflow.config import Settings, get_settings
from vibeflow.observability import get_logger, with_execution_context

from .errors import GraphError, InvalidTransition, NodeExecutionError, WorkflowError
from .models import ExecutionStatus, Node, Workflow, WorkflowExecution, utcnow
from .nodes import NodeRunner


logger = get_logger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"
NO_START_NODES_MESSAGE = "No start nodes found in workflow"


class JoinPolicy(str, Enum):
    """How a node reachable along several paths is scheduled."""
    PER_PATH = "per_path"  # once per incoming path, last write wins
    WAIT_ALL = "wait_all"  # once, after every reachable parent finished


class RunControl:
    """
    Guards the status of one execution.

    Pause/resume/cancel are compare-and-set transitions; the engine blocks
    in :meth:`begin_step` while the run is paused and stops once it is no
    longer running. Every write to the run record after it starts goes
    through this lock so a cancelled record is never touched again.
    """

    def __init__(self, execution: WorkflowExecution):
        self.execution = execution
        self._cond = threading.Condition()

    @property
    def status(self) -> ExecutionStatus:
        with self._cond:
            return self.execution.status

    def snapshot(self) -> WorkflowExecution:
        """Deep copy of the run record, consistent with concurrent engine writes."""
        with self._cond:
            return self.execution.model_copy(deep=True)

    def pause(self) -> None:
        with self._cond:
            self._transition("pause", {ExecutionStatus.RUNNING}, ExecutionStatus.PAUSED)
            self.execution.log("Execution paused")

    def resume(self) -> None:
        with self._cond:
            self._transition("resume", {ExecutionStatus.PAUSED}, ExecutionStatus.RUNNING)
            self.execution.log("Execution resumed")
            self._cond.notify_all()

    def cancel(self) -> None:
        with self._cond:
            self._transition(
                "cancel",
                {ExecutionStatus.RUNNING, ExecutionStatus.PAUSED},
                ExecutionStatus.FAILED,
            )
            self.execution.error = CANCELLED_MESSAGE
            self.execution.completed_at = utcnow()
            self.execution.log(CANCELLED_MESSAGE)
            self._cond.notify_all()

    def begin_step(self, node: Node) -> bool:
        """
        Wait while paused, then mark ``node`` as the current step.

        Returns:
            False if the run is no longer running and traversal must stop
        """
        with self._cond:
            while self.execution.status == ExecutionStatus.PAUSED:
                self._cond.wait()
            if self.execution.status != ExecutionStatus.RUNNING:
                return False
            self.execution.current_step = node.id
            self.execution.log(f"Executing node: {node.display_name}")
            return True

    def record_result(self, node: Node, value: Any) -> bool:
        """Store a node's value unless the run ended while it was executing."""
        with self._cond:
            if self.execution.status.is_terminal:
                return False
            self.execution.results[node.id] = value
            self.execution.log(f"Completed node: {node.display_name}")
            return True

    def fail(self, message: str, log_line: Optional[str] = None) -> bool:
        with self._cond:
            if self.execution.status.is_terminal:
                return False
            if log_line:
                self.execution.log(log_line)
            self.execution.status = ExecutionStatus.FAILED
            self.execution.error = message
            self.execution.completed_at = utcnow()
            self._cond.notify_all()
            return True

    def complete(self) -> bool:
        """Finish a run whose traversal ended; waits out a pause first."""
        with self._cond:
            while self.execution.status == ExecutionStatus.PAUSED:
                self._cond.wait()
            if self.execution.status != ExecutionStatus.RUNNING:
                return False
            self.execution.status = ExecutionStatus.COMPLETED
            self.execution.completed_at = utcnow()
            return True

    def _transition(
        self,
        action: str,
        allowed: Set[ExecutionStatus],
        target: ExecutionStatus,
    ) -> None:
        current = self.execution.status
        if current not in allowed:
            raise InvalidTransition(action, current.value)
        self.execution.status = target


class _Abandoned(Exception):
    """Internal signal: the run stopped being RUNNING mid-traversal."""


class WorkflowEngine:
    """
    Executes workflows against a NodeRunner.

    Usage:
        engine = WorkflowEngine(NodeRunner(llm_client, tool_registry))
        execution = engine.execute(workflow, {"input-1": "hello"})
    """

    def __init__(
        self,
        runner: NodeRunner,
        max_steps: int = 1000,
        join_policy: JoinPolicy = JoinPolicy.PER_PATH,
        run_all_start_nodes: bool = False,
    ):
        """
        Initialize engine.

        Args:
            runner: Node executor dispatcher
            max_steps: Safety limit on node dispatches per execution
            join_policy: Scheduling of nodes with several incoming paths
            run_all_start_nodes: Visit every start node, not only the first
        """
        self._runner = runner
        self._max_steps = max_steps
        self._join_policy = JoinPolicy(join_policy)
        self._run_all_start_nodes = run_all_start_nodes

    @classmethod
    def from_settings(cls, runner: NodeRunner, settings: Settings | None = None) -> "WorkflowEngine":
        settings = settings or get_settings()
        return cls(
            runner,
            max_steps=settings.engine_max_steps,
            join_policy=JoinPolicy(settings.engine_join_policy),
            run_all_start_nodes=settings.engine_run_all_start_nodes,
        )

    @staticmethod
    def new_execution(workflow: Workflow) -> WorkflowExecution:
        """Create a fresh RUNNING run record for ``workflow``."""
        return WorkflowExecution(id=str(uuid.uuid4()), workflow_id=workflow.id)

    def execute(
        self,
        workflow: Workflow,
        initial_inputs: Optional[Mapping[str, Any]] = None,
        execution: Optional[WorkflowExecution] = None,
        control: Optional[RunControl] = None,
    ) -> WorkflowExecution:
        """
        Execute ``workflow`` and return its finished run record.

        Args:
            workflow: Workflow to run (never mutated)
            initial_inputs: Values keyed by node id, visible to every node
            execution: Run record to fill (created if omitted)
            control: Status guard shared with whoever may pause/cancel the run

        Returns:
            The run record, COMPLETED or FAILED
        """
        if execution is None:
            execution = control.execution if control else self.new_execution(workflow)
        if control is None:
            control = RunControl(execution)
        inputs = dict(initial_inputs or {})

        extra = with_execution_context(execution_id=execution.id, workflow_id=workflow.id)
        logger.info("Workflow execution started", extra=extra)

        try:
            roots = self._roots(workflow)
            if self._join_policy == JoinPolicy.WAIT_ALL:
                self._run_joined(workflow, roots, inputs, control)
            else:
                self._run_per_path(workflow, roots, inputs, control)
        except _Abandoned:
            logger.info("Traversal abandoned", extra={**extra, "status": control.status.value})
        except NodeExecutionError as exc:
            control.fail(exc.message, log_line=f"Error in node {exc.node_id}: {exc.message}")
            logger.error(
                "Node execution failed",
                extra={**extra, "node_id": exc.node_id, "error": exc.message},
            )
        except WorkflowError as exc:
            control.fail(str(exc), log_line=f"Error: {exc}")
            logger.error("Workflow execution failed", extra={**extra, "error": str(exc)})
        else:
            control.complete()
            logger.info("Workflow execution finished", extra={**extra, "status": control.status.value})

        return execution

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _roots(self, workflow: Workflow) -> List[Node]:
        starts = workflow.start_nodes()
        if not starts:
            raise GraphError(NO_START_NODES_MESSAGE)
        workflow.validate_graph()
        return starts if self._run_all_start_nodes else starts[:1]

    def _run_per_path(
        self,
        workflow: Workflow,
        roots: List[Node],
        inputs: Dict[str, Any],
        control: RunControl,
    ) -> None:
        """Depth-first, one dispatch per incoming path."""
        stack: List[Tuple[str, Dict[str, Any]]] = [(root.id, {}) for root in reversed(roots)]
        steps = 0

        while stack:
            node_id, path = stack.pop()
            node = workflow.get_node(node_id)
            steps = self._count_step(steps)

            value = self._visit(node, inputs, path, control)

            downstream = {**path, node.id: value}
            for edge in reversed(workflow.outgoing_edges(node.id)):
                stack.append((edge.target, downstream))

    def _run_joined(
        self,
        workflow: Workflow,
        roots: List[Node],
        inputs: Dict[str, Any],
        control: RunControl,
    ) -> None:
        """Depth-first, each reachable node dispatched once after all its parents."""
        reachable = self._reachable(workflow, roots)
        parents: Dict[str, List[str]] = {}
        for node_id in reachable:
            seen: List[str] = []
            for edge in workflow.incoming_edges(node_id):
                if edge.source in reachable and edge.source not in seen:
                    seen.append(edge.source)
            parents[node_id] = seen
        self._check_acyclic(reachable, parents, workflow)

        remaining = {node_id: len(ids) for node_id, ids in parents.items()}
        paths: Dict[str, Dict[str, Any]] = {node_id: {} for node_id in reachable}
        stack: List[str] = [root.id for root in reversed(roots)]
        steps = 0

        while stack:
            node = workflow.get_node(stack.pop())
            steps = self._count_step(steps)

            value = self._visit(node, inputs, paths[node.id], control)

            downstream = {**paths[node.id], node.id: value}
            ready: List[str] = []
            notified: Set[str] = set()
            for edge in workflow.outgoing_edges(node.id):
                target = edge.target
                if target in notified:
                    continue
                notified.add(target)
                paths[target].update(downstream)
                remaining[target] -= 1
                if remaining[target] == 0:
                    ready.append(target)
            stack.extend(reversed(ready))

    def _visit(
        self,
        node: Node,
        inputs: Dict[str, Any],
        path: Dict[str, Any],
        control: RunControl,
    ) -> Any:
        if not control.begin_step(node):
            raise _Abandoned()

        results = control.execution.results
        bindings = {
            **inputs,
            **{key: value for key, value in results.items() if key != node.id},
            **path,
        }
        value = self._runner.run(node, bindings)

        if not control.record_result(node, value):
            raise _Abandoned()
        return value

    def _count_step(self, steps: int) -> int:
        if steps >= self._max_steps:
            raise GraphError(f"Step limit of {self._max_steps} exceeded")
        return steps + 1

    @staticmethod
    def _reachable(workflow: Workflow, roots: List[Node]) -> Set[str]:
        reachable: Set[str] = set()
        stack = [root.id for root in roots]
        while stack:
            node_id = stack.pop()
            if node_id in reachable:
                continue
            reachable.add(node_id)
            stack.extend(edge.target for edge in workflow.outgoing_edges(node_id))
        return reachable

    @staticmethod
    def _check_acyclic(
        reachable: Set[str],
        parents: Dict[str, List[str]],
        workflow: Workflow,
    ) -> None:
        """Kahn's algorithm over the reachable subgraph."""
        in_degree = {node_id: len(ids) for node_id, ids in parents.items()}
        queue = [node_id for node_id, degree in in_degree.items() if degree == 0]
        visited = 0
        while queue:
            node_id = queue.pop()
            visited += 1
            for target in {edge.target for edge in workflow.outgoing_edges(node_id)}:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

        if visited != len(reachable):
            remaining = sorted(node_id for node_id, degree in in_degree.items() if degree > 0)
            raise GraphError(f"Workflow has cycles involving: {remaining}")


__all__ = [
    "CANCELLED_MESSAGE",
    "JoinPolicy",
    "NO_START_NODES_MESSAGE",
    "RunControl",
    "WorkflowEngine",
]
