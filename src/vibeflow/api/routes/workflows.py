"""Workflow catalog routes."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from vibeflow.api.deps import get_manager
from vibeflow.observability import get_logger
from vibeflow.workflow import (
    NotFound,
    Workflow,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowManager,
    WorkflowPatch,
)

logger = get_logger(__name__)
router = APIRouter()


class ExecuteRequest(BaseModel):
    """Request model for starting an execution."""

    inputs: dict[str, Any] = Field(
        default_factory=dict,
        description="Initial values keyed by node id",
    )


@router.get("/templates", response_model=list[Workflow])
def list_templates(manager: WorkflowManager = Depends(get_manager)) -> list[Workflow]:
    """Built-in example workflows."""
    return manager.get_templates()


@router.post("/workflows", response_model=Workflow, status_code=201)
def create_workflow(
    definition: WorkflowDefinition,
    manager: WorkflowManager = Depends(get_manager),
) -> Workflow:
    """Store a new workflow."""
    return manager.create_workflow(definition)


@router.get("/workflows", response_model=list[Workflow])
def list_workflows(manager: WorkflowManager = Depends(get_manager)) -> list[Workflow]:
    """List stored workflows."""
    return manager.list_workflows()


@router.get("/workflows/{workflow_id}", response_model=Workflow)
def get_workflow(
    workflow_id: str,
    manager: WorkflowManager = Depends(get_manager),
) -> Workflow:
    """
    Get a workflow.

    Raises:
        HTTPException: If workflow not found
    """
    workflow = manager.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow


@router.put("/workflows/{workflow_id}", response_model=Workflow)
def update_workflow(
    workflow_id: str,
    patch: WorkflowPatch,
    manager: WorkflowManager = Depends(get_manager),
) -> Workflow:
    """Apply a partial update to a workflow."""
    workflow = manager.update_workflow(workflow_id, patch)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow


@router.delete("/workflows/{workflow_id}", status_code=204)
def delete_workflow(
    workflow_id: str,
    manager: WorkflowManager = Depends(get_manager),
) -> Response:
    """Delete a workflow."""
    if not manager.delete_workflow(workflow_id):
        raise HTTPException(status_code=404, detail="Workflow not found")
    return Response(status_code=204)


@router.post("/workflows/{workflow_id}/execute", response_model=WorkflowExecution)
def execute_workflow(
    workflow_id: str,
    request: ExecuteRequest | None = None,
    background: bool = False,
    manager: WorkflowManager = Depends(get_manager),
) -> WorkflowExecution:
    """
    Execute a workflow.

    With ``?background=true`` the run is submitted to a worker and the
    still-running record is returned immediately.
    """
    inputs = request.inputs if request else {}
    try:
        if background:
            execution = manager.submit(workflow_id, inputs)
        else:
            execution = manager.execute(workflow_id, inputs)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    logger.info(
        "Execution started via API",
        extra={
            "execution_id": execution.id,
            "workflow_id": workflow_id,
            "background": background,
        },
    )
    return execution
