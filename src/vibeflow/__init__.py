"""vibeflow - workflow execution engine for LLM, tool and condition nodes."""

__version__ = "0.1.0"
