"""FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vibeflow import __version__
from vibeflow.api.routes import executions, health, workflows
from vibeflow.observability import setup_logging
from vibeflow.workflow import WorkflowManager


def create_app(manager: WorkflowManager | None = None) -> FastAPI:
    """
    Build the API around ``manager``.

    Args:
        manager: Manager to expose (a default one is created if omitted)
    """
    manager = manager or WorkflowManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        manager.shutdown(wait=False)

    app = FastAPI(
        title="vibeflow",
        description="Workflow execution engine for LLM, tool and condition nodes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager

    app.include_router(health.router, tags=["health"])
    app.include_router(workflows.router, tags=["workflows"])
    app.include_router(executions.router, tags=["executions"])

    @app.get("/")
    def root() -> dict:
        """Root endpoint."""
        return {
            "service": "vibeflow",
            "version": __version__,
            "docs": "/docs",
        }

    return app


setup_logging()
app = create_app()
