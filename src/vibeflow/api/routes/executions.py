"""Execution registry routes."""
from fastapi import APIRouter, Depends, HTTPException

from vibeflow.api.deps import get_manager
from vibeflow.workflow import WorkflowExecution, WorkflowManager

router = APIRouter()


def _transition(manager: WorkflowManager, execution_id: str, action: str) -> WorkflowExecution:
    if manager.get_execution(execution_id) is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    if not getattr(manager, action)(execution_id):
        execution = manager.get_execution(execution_id)
        raise HTTPException(
            status_code=409,
            detail=f"Cannot {action} an execution that is {execution.status.value}",
        )
    return manager.get_execution(execution_id)


@router.get("/executions", response_model=list[WorkflowExecution])
def list_executions(
    workflow_id: str | None = None,
    manager: WorkflowManager = Depends(get_manager),
) -> list[WorkflowExecution]:
    """List executions, optionally for one workflow."""
    return manager.list_executions(workflow_id)


@router.get("/executions/{execution_id}", response_model=WorkflowExecution)
def get_execution(
    execution_id: str,
    manager: WorkflowManager = Depends(get_manager),
) -> WorkflowExecution:
    """
    Get an execution.

    Raises:
        HTTPException: If execution not found
    """
    execution = manager.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return execution


@router.post("/executions/{execution_id}/pause", response_model=WorkflowExecution)
def pause_execution(
    execution_id: str,
    manager: WorkflowManager = Depends(get_manager),
) -> WorkflowExecution:
    """Pause a running execution."""
    return _transition(manager, execution_id, "pause")


@router.post("/executions/{execution_id}/resume", response_model=WorkflowExecution)
def resume_execution(
    execution_id: str,
    manager: WorkflowManager = Depends(get_manager),
) -> WorkflowExecution:
    """Resume a paused execution."""
    return _transition(manager, execution_id, "resume")


@router.post("/executions/{execution_id}/cancel", response_model=WorkflowExecution)
def cancel_execution(
    execution_id: str,
    manager: WorkflowManager = Depends(get_manager),
) -> WorkflowExecution:
    """Cancel a running or paused execution."""
    return _transition(manager, execution_id, "cancel")
