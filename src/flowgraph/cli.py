"""
Flow Graph CLI - Main entry point.

Provides commands for:
- Validating and ordering flow graphs
- Running flows against the connector gateway
- Listing the connector catalog
- Serving the HTTP API
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

import click
from pydantic import ValidationError

from .catalog import list_connectors
from .connectors import HttpConnectorInvoker
from .context import LogLevel, RunEvent, RunEventType
from .executor import FlowExecutor, RunResult
from .graph import FlowGraph
from .observability import setup_logging
from .problems import GraphCycleError
from .scheduler import Scheduler
from .validation import Validator


def load_graph(graph_file: str) -> FlowGraph:
    """Load a graph definition JSON file."""
    path = Path(graph_file)
    with open(path) as f:
        data = json.load(f)
    try:
        return FlowGraph.from_definition(data)
    except (ValidationError, ValueError) as e:
        raise click.ClickException(f"Invalid graph file {path}: {e}") from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Suppress process logs")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool):
    """Flow Graph - Validate and run connector/action flows."""
    ctx.ensure_object(dict)

    setup_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.ERROR)

    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


@cli.command("validate")
@click.argument("graph_file", type=click.Path(exists=True))
def validate_cmd(graph_file: str):
    """
    Check that a flow graph can run.

    GRAPH_FILE: Path to graph JSON
    """
    graph = load_graph(graph_file)
    result = Validator().validate(graph)

    if result.is_valid:
        click.echo(f"Graph '{graph.name}' is valid ({len(graph)} nodes)")
        return

    click.echo(f"Graph '{graph.name}' has {len(result.problems)} problem(s):")
    for problem in result.problems:
        click.echo(f"  ✗ {problem}")
    sys.exit(1)


@cli.command("order")
@click.argument("graph_file", type=click.Path(exists=True))
def order_cmd(graph_file: str):
    """
    Print the execution order of a flow graph.

    GRAPH_FILE: Path to graph JSON
    """
    graph = load_graph(graph_file)
    try:
        order = Scheduler().order(graph)
    except GraphCycleError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    for position, node_id in enumerate(order, start=1):
        node = graph.node(node_id)
        click.echo(f"{position}. [{node_id}] {node.display_label}")


@cli.command("run")
@click.argument("graph_file", type=click.Path(exists=True))
@click.option(
    "--gateway-url", "-g",
    help="Connector gateway base URL (defaults to FLOWGRAPH_GATEWAY_URL)"
)
@click.option(
    "--pacing-delay", "-p",
    type=click.FloatRange(min=0),
    help="Seconds between two nodes (defaults to FLOWGRAPH_PACING_DELAY_S)"
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    help="Path to output JSON file"
)
def run_cmd(
    graph_file: str,
    gateway_url: Optional[str],
    pacing_delay: Optional[float],
    output: Optional[str],
):
    """
    Run a flow graph.

    GRAPH_FILE: Path to graph JSON

    Examples:

        # Run a flow
        flowgraph run ./weather-to-chat.json

        # Without pacing, saving the result
        flowgraph run ./flow.json -p 0 -o result.json
    """
    graph = load_graph(graph_file)
    executor = FlowExecutor(
        invoker=HttpConnectorInvoker(base_url=gateway_url),
        pacing_delay=pacing_delay,
    )

    click.echo(f"Running flow: {graph.name}")
    click.echo(f"Nodes: {len(graph)}")

    results: List[RunResult] = []
    done = threading.Event()

    def on_finish(result: RunResult) -> None:
        results.append(result)
        done.set()

    executor.submit(graph, on_finish=on_finish, on_event=_echo_event)
    try:
        while not done.wait(0.1):
            pass
    except KeyboardInterrupt:
        click.echo("\nCancelling after the current node...")
        executor.cancel()
        done.wait()

    result = results[0]
    click.echo(f"\nStatus: {result.state.value}")
    click.echo(f"Duration: {result.duration_ms:.2f}ms")
    for problem in result.problems:
        click.echo(f"  ✗ {problem}")

    if output:
        with open(output, "w") as f:
            json.dump(_result_to_dict(result), f, indent=2)
        click.echo(f"\nResult saved to: {output}")

    if result.is_aborted:
        sys.exit(1)


@cli.command("catalog")
def catalog_cmd():
    """List connector kinds, their fields and their actions."""
    for connector in list_connectors():
        click.echo(f"{connector['kind']}")
        click.echo(f"  required: {', '.join(connector['required_fields']) or '-'}")
        click.echo(f"  actions:  {', '.join(connector['actions'])}")


@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8080, show_default=True, type=int)
def serve_cmd(host: str, port: int):
    """Serve the HTTP API."""
    import uvicorn

    uvicorn.run("flowgraph.api.main:app", host=host, port=port)


def _echo_event(event: RunEvent) -> None:
    if event.type is not RunEventType.LOG or event.entry is None:
        return
    entry = event.entry
    prefix = f"[{entry.node_id}] " if entry.node_id is not None else ""
    if entry.level is LogLevel.ERROR:
        click.echo(click.style(f"{prefix}{entry.message}", fg="red"))
    else:
        click.echo(f"{prefix}{entry.message}")


def _result_to_dict(result: RunResult) -> dict:
    return {
        "run_id": result.run_id,
        "state": result.state.value,
        "order": result.order,
        "problems": [problem.model_dump(mode="json") for problem in result.problems],
        "log": [entry.to_dict() for entry in result.log],
        "action_outputs": {str(key): value for key, value in result.action_outputs.items()},
        "node_errors": {str(key): value for key, value in result.node_errors.items()},
        "duration_ms": result.duration_ms,
    }


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
