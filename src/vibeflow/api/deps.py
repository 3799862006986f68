"""Request dependencies."""
from fastapi import Request

from vibeflow.workflow import WorkflowManager


def get_manager(request: Request) -> WorkflowManager:
    """Manager owned by the application (``app.state.manager``)."""
    return request.app.state.manager
