"""Structured JSON logging with execution context."""
import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from vibeflow.config import get_settings

_CONTEXT_FIELDS = ("execution_id", "workflow_id", "node_id", "node_kind")


class ExecutionContextFilter(logging.Filter):
    """Add execution context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add default context fields if not present."""
        for name in _CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        # Only emit context that is actually set
        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value:
                log_record[name] = value
            else:
                log_record.pop(name, None)


def setup_logging() -> None:
    """Configure structured JSON logging for the application."""
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)
    handler.addFilter(ExecutionContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call ``extra`` instead of replacing it."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> logging.LoggerAdapter:
    """
    Get a logger with execution context support.

    Args:
        name: Logger name (typically __name__)

    Returns:
        LoggerAdapter that can accept execution context in extra dict
    """
    logger = logging.getLogger(name)
    return ContextLoggerAdapter(logger, extra={})


def with_execution_context(
    execution_id: str | None = None,
    workflow_id: str | None = None,
    node_id: str | None = None,
    node_kind: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with execution context for logging.

    Args:
        execution_id: Execution (run record) ID
        workflow_id: Workflow ID
        node_id: Node currently being executed
        node_kind: Kind of that node
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if execution_id:
        extra["execution_id"] = execution_id
    if workflow_id:
        extra["workflow_id"] = workflow_id
    if node_id:
        extra["node_id"] = node_id
    if node_kind:
        extra["node_kind"] = node_kind
    return extra
