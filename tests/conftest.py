"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["VIBEFLOW_ENV"] = "test"
os.environ["VIBEFLOW_LLM_PROVIDER"] = "echo"
os.environ["VIBEFLOW_TOOL_TIMEOUT_S"] = "5"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so monkeypatched env vars take effect."""
    from vibeflow.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def tool_registry():
    """Tool registry with the built-in tools and no timeout."""
    from vibeflow.collaborators import default_tool_registry

    registry = default_tool_registry(timeout_s=None)
    yield registry
    registry.close()


@pytest.fixture
def runner(tool_registry):
    """Node runner backed by the echo LLM client."""
    from vibeflow.collaborators import EchoLLMClient
    from vibeflow.workflow import NodeRunner

    return NodeRunner(llm_client=EchoLLMClient(), tool_invoker=tool_registry)


@pytest.fixture
def engine(runner):
    """Engine with default (per-path) scheduling."""
    from vibeflow.workflow import WorkflowEngine

    return WorkflowEngine(runner)


@pytest.fixture
def manager(engine):
    """Manager wrapping the test engine."""
    from vibeflow.workflow import WorkflowManager

    manager = WorkflowManager(engine=engine)
    yield manager
    manager.shutdown()


@pytest.fixture
def make_workflow():
    """Build a Workflow from compact node/edge tuples."""
    from vibeflow.workflow import Workflow

    def _make(nodes, edges, workflow_id="wf-test"):
        return Workflow.model_validate(
            {
                "id": workflow_id,
                "name": "test",
                "nodes": [
                    {"id": node_id, "kind": kind, "label": node_id, "config": config}
                    for node_id, kind, config in nodes
                ],
                "edges": [
                    {"id": f"e{i}", "source": source, "target": target}
                    for i, (source, target) in enumerate(edges)
                ],
            }
        )

    return _make


@pytest.fixture
def chain_definition():
    """Input -> LLM -> Output definition in the editor's nested form."""
    return {
        "name": "Chain",
        "description": "input to llm to output",
        "nodes": [
            {
                "id": "input-1",
                "type": "input",
                "position": {"x": 0, "y": 0},
                "data": {"label": "Question", "config": {"defaultValue": "hi"}},
            },
            {
                "id": "llm-1",
                "type": "llm",
                "position": {"x": 200, "y": 0},
                "data": {
                    "label": "Answer",
                    "config": {"model": "test-model", "prompt": "Q: {{input-1}}"},
                },
            },
            {
                "id": "output-1",
                "type": "output",
                "position": {"x": 400, "y": 0},
                "data": {"label": "Result", "config": {"value": "{{llm-1.content}}"}},
            },
        ],
        "edges": [
            {"id": "e1", "source": "input-1", "target": "llm-1"},
            {"id": "e2", "source": "llm-1", "target": "output-1"},
        ],
        "author": "tests",
        "tags": ["chain"],
    }
