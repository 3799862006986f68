"""
Command line interface for the workflow engine.

Provides terminal access to:
- Built-in templates
- Workflow validation
- Workflow execution
- The HTTP API server
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vibeflow.observability import setup_logging
from vibeflow.workflow import GraphError, WorkflowDefinition, WorkflowManager
from vibeflow.workflow.models import Workflow
from vibeflow.workflow.templates import get_templates


def load_definition(path: str) -> WorkflowDefinition:
    """Load a workflow definition from a JSON file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return WorkflowDefinition.model_validate(data)


def parse_inputs(pairs: list[str] | None) -> dict[str, Any]:
    """
    Parse ``key=value`` pairs; values that are valid JSON are decoded.

    Raises:
        ValueError: If a pair has no ``=``
    """
    inputs: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got: {pair}")
        try:
            inputs[key] = json.loads(raw)
        except json.JSONDecodeError:
            inputs[key] = raw
    return inputs


def cmd_templates(args: argparse.Namespace) -> int:
    """Print the built-in templates."""
    templates = get_templates()
    if args.json:
        print(json.dumps([t.model_dump(mode="json", by_alias=True) for t in templates], indent=2))
        return 0

    for template in templates:
        print(f"{template.id}: {template.name} ({len(template.nodes)} nodes)")
        print(f"    {template.description}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Check a workflow file for structural errors."""
    try:
        definition = load_definition(args.file)
        workflow = Workflow.model_validate({**definition.model_dump(), "id": "cli"})
        workflow.validate_graph()
    except (OSError, json.JSONDecodeError, ValidationError, GraphError) as e:
        print(f"Invalid workflow: {e}")
        return 1

    starts = [node.id for node in workflow.start_nodes()]
    if not starts:
        print("Invalid workflow: No start nodes found in workflow")
        return 1

    print(f"OK: {len(workflow.nodes)} nodes, {len(workflow.edges)} edges, start nodes: {', '.join(starts)}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Execute a workflow file and print the run record."""
    setup_logging()

    try:
        definition = load_definition(args.file)
        inputs = parse_inputs(args.input)
    except (OSError, json.JSONDecodeError, ValidationError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    manager = WorkflowManager()
    try:
        workflow = manager.create_workflow(definition)
        execution = manager.execute(workflow.id, inputs)
    finally:
        manager.shutdown()

    print(json.dumps(execution.model_dump(mode="json", by_alias=True), indent=2))
    return 0 if execution.status.value == "completed" else 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("vibeflow.api.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vibeflow",
        description="Workflow execution engine",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    templates = subparsers.add_parser("templates", help="List built-in templates")
    templates.add_argument("--json", action="store_true", help="Print full JSON")
    templates.set_defaults(func=cmd_templates)

    validate = subparsers.add_parser("validate", help="Validate a workflow JSON file")
    validate.add_argument("file", help="Path to workflow JSON")
    validate.set_defaults(func=cmd_validate)

    run = subparsers.add_parser("run", help="Execute a workflow JSON file")
    run.add_argument("file", help="Path to workflow JSON")
    run.add_argument(
        "--input",
        "-i",
        action="append",
        metavar="NODE_ID=VALUE",
        help="Initial input for a node (repeatable; JSON values are decoded)",
    )
    run.set_defaults(func=cmd_run)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
