"""Built-in example workflows used to seed new graphs."""

from __future__ import annotations

from typing import Any, Dict, List

from .models import Workflow


_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "template-1",
        "name": "Code Review Workflow",
        "description": "Automated code review with AI analysis",
        "nodes": [
            {
                "id": "input-1",
                "kind": "input",
                "position": {"x": 100, "y": 100},
                "label": "Code Input",
                "config": {"defaultValue": ""},
            },
            {
                "id": "llm-1",
                "kind": "llm",
                "position": {"x": 300, "y": 100},
                "label": "Code Analysis",
                "config": {
                    "model": "gpt-4",
                    "prompt": (
                        "Analyze this code for bugs, performance issues, "
                        "and best practices: {{input-1}}"
                    ),
                },
            },
            {
                "id": "output-1",
                "kind": "output",
                "position": {"x": 500, "y": 100},
                "label": "Review Report",
                "config": {"value": "{{llm-1.content}}"},
            },
        ],
        "edges": [
            {"id": "e1", "source": "input-1", "target": "llm-1"},
            {"id": "e2", "source": "llm-1", "target": "output-1"},
        ],
        "published": True,
        "author": "System",
        "tags": ["code-review", "ai"],
        "version": "1.0.0",
    },
    {
        "id": "template-2",
        "name": "Data Processing Pipeline",
        "description": "Process and analyze data with multiple steps",
        "nodes": [
            {
                "id": "input-2",
                "kind": "input",
                "position": {"x": 100, "y": 100},
                "label": "Data Input",
                "config": {"defaultValue": ""},
            },
            {
                "id": "tool-1",
                "kind": "tool",
                "position": {"x": 300, "y": 100},
                "label": "Data Cleaner",
                "config": {"toolName": "data-cleaner", "arguments": "{{input-2}}"},
            },
            {
                "id": "llm-2",
                "kind": "llm",
                "position": {"x": 500, "y": 100},
                "label": "Data Analysis",
                "config": {
                    "model": "gpt-4",
                    "prompt": "Analyze this cleaned data: {{tool-1.result}}",
                },
            },
            {
                "id": "output-2",
                "kind": "output",
                "position": {"x": 700, "y": 100},
                "label": "Analysis Report",
                "config": {"value": "{{llm-2.content}}"},
            },
        ],
        "edges": [
            {"id": "e3", "source": "input-2", "target": "tool-1"},
            {"id": "e4", "source": "tool-1", "target": "llm-2"},
            {"id": "e5", "source": "llm-2", "target": "output-2"},
        ],
        "published": True,
        "author": "System",
        "tags": ["data-processing", "pipeline"],
        "version": "1.0.0",
    },
]


def get_templates() -> List[Workflow]:
    """Fresh copies of the built-in templates."""
    return [Workflow.model_validate(data) for data in _TEMPLATES]


__all__ = ["get_templates"]
