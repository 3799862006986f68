"""
Workflow Manager - catalog of workflows and registry of their executions.

All registry access goes through one re-entrant lock. Per-execution status
changes (pause/resume/cancel) go through that execution's RunControl, so
they are safe against the engine thread that is running it.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Union

from vibeflow.collaborators import ToolRegistry, build_llm_client, default_tool_registry
from vibeflow.config import Settings, get_settings
from vibeflow.observability import get_logger, with_execution_context

from .engine import RunControl, WorkflowEngine
from .errors import InvalidTransition, NotFound
from .models import (
    Workflow,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowPatch,
    utcnow,
)
from .nodes import NodeRunner
from .templates import get_templates


logger = get_logger(__name__)


class WorkflowManager:
    """
    Thread-safe owner of the workflow catalog and execution history.

    Usage:
        manager = WorkflowManager()
        workflow = manager.create_workflow({"name": "demo", "nodes": [...], "edges": [...]})
        execution = manager.execute(workflow.id, {"input-1": "hello"})
    """

    def __init__(
        self,
        engine: Optional[WorkflowEngine] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize manager.

        Args:
            engine: Engine to run workflows with (built from settings if omitted)
            settings: Settings for the default engine and worker pool
        """
        settings = settings or get_settings()
        self._tools: Optional[ToolRegistry] = None
        if engine is None:
            self._tools = default_tool_registry(settings.tool_timeout_s)
            runner = NodeRunner(
                llm_client=build_llm_client(settings),
                tool_invoker=self._tools,
                default_model=settings.default_model,
            )
            engine = WorkflowEngine.from_settings(runner, settings)

        self._engine = engine
        self._max_workers = settings.manager_max_workers
        self._lock = threading.RLock()
        self._workflows: Dict[str, Workflow] = {}
        self._controls: Dict[str, RunControl] = {}
        self._futures: Dict[str, Future] = {}
        self._pool: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    # Workflow CRUD
    # ------------------------------------------------------------------

    def create_workflow(
        self,
        definition: Union[WorkflowDefinition, Mapping[str, Any]],
    ) -> Workflow:
        """Store a new workflow, assigning its id and timestamps."""
        if not isinstance(definition, WorkflowDefinition):
            definition = WorkflowDefinition.model_validate(definition)

        now = utcnow()
        workflow = Workflow.model_validate(
            {
                **definition.model_dump(),
                "id": str(uuid.uuid4()),
                "created_at": now,
                "updated_at": now,
            }
        )
        with self._lock:
            self._workflows[workflow.id] = workflow
        logger.info("Workflow created", extra=with_execution_context(workflow_id=workflow.id))
        return workflow.model_copy(deep=True)

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return workflow.model_copy(deep=True) if workflow else None

    def list_workflows(self) -> List[Workflow]:
        with self._lock:
            return [workflow.model_copy(deep=True) for workflow in self._workflows.values()]

    def update_workflow(
        self,
        workflow_id: str,
        patch: Union[WorkflowPatch, Mapping[str, Any]],
    ) -> Optional[Workflow]:
        """
        Apply ``patch`` to a stored workflow.

        Returns:
            The updated workflow, or None if ``workflow_id`` is unknown
        """
        if not isinstance(patch, WorkflowPatch):
            patch = WorkflowPatch.model_validate(patch)
        changes = patch.model_dump(exclude_unset=True)

        with self._lock:
            current = self._workflows.get(workflow_id)
            if current is None:
                return None
            updated = Workflow.model_validate(
                {**current.model_dump(), **changes, "updated_at": utcnow()}
            )
            self._workflows[workflow_id] = updated

        logger.info(
            "Workflow updated",
            extra=with_execution_context(workflow_id=workflow_id, fields=sorted(changes)),
        )
        return updated.model_copy(deep=True)

    def delete_workflow(self, workflow_id: str) -> bool:
        with self._lock:
            deleted = self._workflows.pop(workflow_id, None) is not None
        if deleted:
            logger.info("Workflow deleted", extra=with_execution_context(workflow_id=workflow_id))
        return deleted

    def get_templates(self) -> List[Workflow]:
        """Built-in example workflows (not part of the catalog)."""
        return get_templates()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(
        self,
        workflow_id: str,
        inputs: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowExecution:
        """
        Run a workflow on the calling thread.

        Raises:
            NotFound: If ``workflow_id`` is unknown
        """
        workflow, control = self._start(workflow_id)
        self._engine.execute(workflow, inputs, control=control)
        return control.snapshot()

    def submit(
        self,
        workflow_id: str,
        inputs: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowExecution:
        """
        Start a workflow on a worker thread and return the live record.

        Raises:
            NotFound: If ``workflow_id`` is unknown
        """
        workflow, control = self._start(workflow_id)
        execution_id = control.execution.id
        with self._lock:
            future = self._get_pool().submit(
                self._engine.execute, workflow, inputs, control=control
            )
            self._futures[execution_id] = future
        return control.snapshot()

    def wait(self, execution_id: str, timeout: Optional[float] = None) -> WorkflowExecution:
        """
        Block until a submitted execution finishes.

        Raises:
            NotFound: If ``execution_id`` is unknown
            concurrent.futures.TimeoutError: If ``timeout`` elapses first
        """
        with self._lock:
            control = self._controls.get(execution_id)
            future = self._futures.get(execution_id)
        if control is None:
            raise NotFound("Execution", execution_id)
        if future is not None:
            future.result(timeout=timeout)
        return control.snapshot()

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        with self._lock:
            control = self._controls.get(execution_id)
        return control.snapshot() if control else None

    def list_executions(self, workflow_id: Optional[str] = None) -> List[WorkflowExecution]:
        with self._lock:
            controls = list(self._controls.values())
        snapshots = [control.snapshot() for control in controls]
        if workflow_id is not None:
            snapshots = [item for item in snapshots if item.workflow_id == workflow_id]
        return snapshots

    def pause(self, execution_id: str) -> bool:
        return self._transition(execution_id, "pause")

    def resume(self, execution_id: str) -> bool:
        return self._transition(execution_id, "resume")

    def cancel(self, execution_id: str) -> bool:
        return self._transition(execution_id, "cancel")

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker pool and the tool registry this manager built."""
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait)
        if self._tools is not None:
            self._tools.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, workflow_id: str) -> tuple[Workflow, RunControl]:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                raise NotFound("Workflow", workflow_id)
            workflow = workflow.model_copy(deep=True)
            execution = self._engine.new_execution(workflow)
            control = RunControl(execution)
            self._controls[execution.id] = control

        logger.info(
            "Execution registered",
            extra=with_execution_context(execution_id=execution.id, workflow_id=workflow_id),
        )
        return workflow, control

    def _transition(self, execution_id: str, action: str) -> bool:
        with self._lock:
            control = self._controls.get(execution_id)
        if control is None:
            return False

        try:
            getattr(control, action)()
        except InvalidTransition as exc:
            logger.info(
                f"Rejected {action}: {exc}",
                extra=with_execution_context(execution_id=execution_id),
            )
            return False

        logger.info(
            f"Execution {action} accepted",
            extra=with_execution_context(execution_id=execution_id),
        )
        return True

    def _get_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="vibeflow-run",
            )
        return self._pool


__all__ = ["WorkflowManager"]
