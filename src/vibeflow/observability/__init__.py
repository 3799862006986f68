"""Observability package."""
from vibeflow.observability.logging import (
    get_logger,
    setup_logging,
    with_execution_context,
)

__all__ = ["get_logger", "setup_logging", "with_execution_context"]
