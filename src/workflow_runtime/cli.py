"""
Workflow Engine CLI - Main entry point.

Provides commands for:
- Executing a workflow graph from a JSON file
- Listing registered node types
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from node_registry import NodeRegistry

from .config import get_settings
from .credentials import InMemoryCredentialStore
from .errors import GraphError
from .executor import WorkflowEngine
from .models import RunMode, parse_workflow
from .observability import setup_logging
from .state import RunStatus

EXIT_RUN_FAILED = 1
EXIT_GRAPH_ERROR = 2


def build_registry() -> NodeRegistry:
    """Registry with the bundled core pack plus every installed node pack."""
    from nodepacks.core.manifest import register_nodes

    registry = NodeRegistry()
    registry.discover_entry_points()

    if not any(pack.name == "core" for pack in registry.list_packs()):
        manifest, node_classes = register_nodes()
        registry.register_pack(manifest, node_classes)
    return registry


def _load_json(path: str) -> object:
    with open(path) as f:
        return json.load(f)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool):
    """Workflow Engine - execute n8n-style workflow graphs."""
    ctx.ensure_object(dict)

    level = get_settings().log_level
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    # Logs go to stderr so stdout stays parseable JSON
    setup_logging(level=level, stream=sys.stderr)

    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


@cli.command("run")
@click.argument("workflow_file", type=click.Path(exists=True))
@click.option(
    "--input", "-i", "input_file",
    type=click.Path(exists=True),
    help="Path to input items JSON file (object or list of objects)"
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    help="Path to write the run summary JSON"
)
@click.option(
    "--mode", "-m",
    type=click.Choice([mode.value for mode in RunMode]),
    default=RunMode.MANUAL.value,
    show_default=True,
    help="Run mode recorded on the run"
)
@click.option(
    "--triggered-by", "-u",
    default=None,
    help="Owner id used to resolve credentials"
)
@click.option(
    "--credentials", "-c", "credentials_file",
    type=click.Path(exists=True),
    help="JSON file mapping credential type to payload, owned by --triggered-by"
)
def run_workflow(
    workflow_file: str,
    input_file: Optional[str],
    output: Optional[str],
    mode: str,
    triggered_by: Optional[str],
    credentials_file: Optional[str],
):
    """
    Execute a workflow from a JSON file.

    WORKFLOW_FILE: Path to workflow JSON

    Examples:

        # Run a workflow
        workflow-engine run ./my-workflow.json

        # With input items and credentials
        workflow-engine run ./workflow.json -i items.json -u alice -c creds.json
    """
    initial_items = None
    if input_file:
        data = _load_json(input_file)
        initial_items = data if isinstance(data, list) else [data]

    credential_store = None
    if credentials_file:
        credential_store = InMemoryCredentialStore()
        for credential_type, payload in dict(_load_json(credentials_file)).items():
            credential_store.add(triggered_by, credential_type, payload)

    engine = WorkflowEngine(build_registry(), credential_store=credential_store)

    try:
        graph = parse_workflow(dict(_load_json(workflow_file)))
        result = engine.run(graph, initial_items, triggered_by=triggered_by, mode=mode)
    except GraphError as e:
        click.echo(f"Invalid workflow: {e}", err=True)
        sys.exit(EXIT_GRAPH_ERROR)

    summary = {
        "runId": result.run_id,
        "workflowId": result.workflow_id,
        "status": result.status.value,
        "error": result.error,
        "errorNodeId": result.error_node_id,
        "executionOrder": result.execution_order,
        "durationMs": round(result.duration_ms, 2),
        "outputsByNode": engine.get_state(result.run_id).outputs_by_node(),
    }

    if output:
        with open(output, "w") as f:
            json.dump(summary, f, indent=2)
        click.echo(f"Run summary saved to: {output}", err=True)
    else:
        click.echo(json.dumps(summary, indent=2))

    if result.status is not RunStatus.COMPLETED:
        sys.exit(EXIT_RUN_FAILED)


@cli.command("nodes")
@click.option("--group", "-g", default=None, help="Only list nodes tagged with this group")
def list_nodes(group: Optional[str]):
    """List registered node types."""
    registry = build_registry()
    definitions = registry.list_by_group(group) if group else registry.list_nodes()

    click.echo("Registered nodes:")
    for definition in definitions:
        tags = ", ".join(definition.group)
        click.echo(f"  {definition.node_type}: {definition.display_name} [{tags}]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
