"""Unit tests for the workflow manager."""
import threading
from unittest.mock import patch

import pytest

from vibeflow.collaborators import LLMResponse
from vibeflow.workflow import (
    ExecutionStatus,
    NodeRunner,
    NotFound,
    WorkflowEngine,
    WorkflowManager,
)


class TestWorkflowCatalog:
    """CRUD over stored workflows."""

    def test_create_assigns_id_and_timestamps(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)

        assert workflow.id
        assert workflow.created_at == workflow.updated_at
        assert workflow.name == "Chain"
        assert [node.id for node in workflow.nodes] == ["input-1", "llm-1", "output-1"]
        assert workflow.nodes[1].config["prompt"] == "Q: {{input-1}}"

    def test_get_is_idempotent(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)

        first = manager.get_workflow(workflow.id)
        second = manager.get_workflow(workflow.id)

        assert first.model_dump_json(by_alias=True) == second.model_dump_json(by_alias=True)

    def test_returned_copies_do_not_alias_the_catalog(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)
        fetched = manager.get_workflow(workflow.id)
        fetched.nodes.clear()

        assert len(manager.get_workflow(workflow.id).nodes) == 3

    def test_get_unknown_returns_none(self, manager):
        assert manager.get_workflow("missing") is None

    def test_list(self, manager, chain_definition):
        manager.create_workflow(chain_definition)
        manager.create_workflow({**chain_definition, "name": "Second"})
        assert sorted(w.name for w in manager.list_workflows()) == ["Chain", "Second"]

    def test_update_applies_patch(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)

        updated = manager.update_workflow(
            workflow.id,
            {"name": "Renamed", "published": True, "id": "hijack", "createdAt": "2000-01-01T00:00:00Z"},
        )

        assert updated.id == workflow.id
        assert updated.name == "Renamed"
        assert updated.published is True
        assert updated.description == chain_definition["description"]
        assert updated.created_at == workflow.created_at
        assert updated.updated_at >= workflow.updated_at
        assert manager.get_workflow(workflow.id).name == "Renamed"

    def test_update_unknown_returns_none(self, manager):
        assert manager.update_workflow("missing", {"name": "x"}) is None

    def test_delete(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)
        assert manager.delete_workflow(workflow.id) is True
        assert manager.delete_workflow(workflow.id) is False
        assert manager.get_workflow(workflow.id) is None

    def test_templates(self, manager):
        templates = manager.get_templates()
        assert [t.id for t in templates] == ["template-1", "template-2"]
        assert manager.list_workflows() == []

        templates[0].name = "changed"
        assert manager.get_templates()[0].name == "Code Review Workflow"


class TestExecution:
    """Running workflows through the manager."""

    def test_execute_chain(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)

        execution = manager.execute(workflow.id)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.workflow_id == workflow.id
        assert execution.results["input-1"] == "hi"
        assert execution.results["output-1"] == "LLM response for: Q: hi"
        assert manager.get_execution(execution.id).status == ExecutionStatus.COMPLETED

    def test_execute_unknown_workflow(self, manager):
        with pytest.raises(NotFound) as exc_info:
            manager.execute("missing")
        assert str(exc_info.value) == "Workflow missing not found"

    def test_list_executions_filters_by_workflow(self, manager, chain_definition):
        first = manager.create_workflow(chain_definition)
        second = manager.create_workflow(chain_definition)
        manager.execute(first.id)
        manager.execute(first.id)
        manager.execute(second.id)

        assert len(manager.list_executions()) == 3
        assert len(manager.list_executions(first.id)) == 2

    def test_templates_execute_end_to_end(self, manager):
        for template in manager.get_templates():
            workflow = manager.create_workflow(template.model_dump())
            input_id = workflow.nodes[0].id
            execution = manager.execute(workflow.id, {input_id: "  some   data  "})
            assert execution.status == ExecutionStatus.COMPLETED, execution.error
            output_id = workflow.nodes[-1].id
            assert execution.results[output_id].startswith("LLM response for: ")

    def test_pause_on_completed_is_rejected(self, manager, chain_definition):
        workflow = manager.create_workflow(chain_definition)
        execution = manager.execute(workflow.id)

        assert manager.pause(execution.id) is False
        assert manager.resume(execution.id) is False
        assert manager.cancel(execution.id) is False
        assert manager.get_execution(execution.id).status == ExecutionStatus.COMPLETED

    def test_transitions_on_unknown_execution(self, manager):
        assert manager.pause("missing") is False
        assert manager.get_execution("missing") is None
        with pytest.raises(NotFound):
            manager.wait("missing")


class TestBackgroundExecution:
    """submit() runs on a worker; transitions act on the live record."""

    @pytest.fixture
    def gate(self):
        return {"started": threading.Event(), "release": threading.Event()}

    @pytest.fixture
    def gated_manager(self, gate, tool_registry):
        class GatedClient:
            def call(self, prompt, model):
                gate["started"].set()
                assert gate["release"].wait(timeout=5)
                return LLMResponse(content="answer", model=model)

        engine = WorkflowEngine(NodeRunner(llm_client=GatedClient(), tool_invoker=tool_registry))
        manager = WorkflowManager(engine=engine)
        yield manager
        gate["release"].set()
        manager.shutdown()

    def test_pause_running_then_resume(self, gate, gated_manager, chain_definition):
        workflow = gated_manager.create_workflow(chain_definition)
        execution = gated_manager.submit(workflow.id)
        assert gate["started"].wait(timeout=5)

        assert gated_manager.pause(execution.id) is True
        assert gated_manager.get_execution(execution.id).status == ExecutionStatus.PAUSED
        assert gated_manager.pause(execution.id) is False

        gate["release"].set()
        assert gated_manager.resume(execution.id) is True
        finished = gated_manager.wait(execution.id, timeout=5)

        assert finished.status == ExecutionStatus.COMPLETED
        assert finished.results["output-1"] == "answer"

    def test_cancel_running(self, gate, gated_manager, chain_definition):
        workflow = gated_manager.create_workflow(chain_definition)
        execution = gated_manager.submit(workflow.id)
        assert execution.status == ExecutionStatus.RUNNING
        assert gate["started"].wait(timeout=5)

        assert gated_manager.cancel(execution.id) is True
        gate["release"].set()
        finished = gated_manager.wait(execution.id, timeout=5)

        assert finished.status == ExecutionStatus.FAILED
        assert finished.error == "Cancelled by user"
        assert "llm-1" not in finished.results
        assert gated_manager.cancel(execution.id) is False

    def test_concurrent_creates_are_all_stored(self, manager, chain_definition):
        threads = [
            threading.Thread(target=manager.create_workflow, args=(chain_definition,))
            for _ in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(manager.list_workflows()) == 20


class TestShutdown:
    """shutdown() releases the resources the manager owns."""

    @patch("vibeflow.workflow.manager.default_tool_registry")
    def test_closes_tool_registry_it_built(self, mock_registry_factory):
        manager = WorkflowManager()

        manager.shutdown()

        mock_registry_factory.assert_called_once_with(5.0)
        mock_registry_factory.return_value.close.assert_called_once()
