#!/usr/bin/env python3
"""
CLI for the automation workflow engine.

Usage:
    automation blocks                  # List the built-in block palette
    automation validate workflow.json  # Check a workflow graph before running it
    automation config                  # Show effective configuration
"""
import json
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Load .env before importing engine modules so settings pick it up
load_dotenv()

from automation_engine.compiler.validate_graph import collect_graph_issues  # noqa: E402
from automation_engine.errors import WorkflowFormatError  # noqa: E402
from automation_engine.registry.builtins import build_default_registry  # noqa: E402
from automation_engine.schema.serialization import parse_workflow  # noqa: E402

console = Console()


@click.group()
@click.version_option(version="0.1.0", prog_name="automation")
def cli():
    """
    Automation workflow engine.

    \b
    Commands:
      blocks     - List built-in block types with their sockets
      validate   - Validate a workflow JSON document
      config     - Show current configuration
    """


@cli.command()
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def blocks(fmt: str):
    """
    List the block types available to workflows.
    """
    registry = build_default_registry()

    if fmt == 'json':
        output = [
            {
                "id": definition.id,
                "name": definition.name,
                "parameters": [param.model_dump(mode="json") for param in definition.parameters],
                "inputs": [socket.id for socket in definition.inputs],
                "outputs": [socket.id for socket in definition.outputs],
            }
            for definition in registry.all()
        ]
        click.echo(json.dumps(output, indent=2))
        return

    table = Table(title="Block Types", box=box.ROUNDED)
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Parameters", style="dim")
    table.add_column("Inputs")
    table.add_column("Outputs")
    for definition in registry.all():
        table.add_row(
            definition.id,
            definition.name,
            ", ".join(f"{p.id}{'*' if p.required else ''}" for p in definition.parameters) or "-",
            ", ".join(socket.id for socket in definition.inputs) or "-",
            ", ".join(socket.id for socket in definition.outputs) or "-",
        )
    console.print(table)


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(path: Path):
    """
    Validate a workflow document against the built-in block types.

    Exits with status 1 when the graph is invalid.

    \b
    Example:
      automation validate my-workflow.json
    """
    try:
        workflow = parse_workflow(path.read_text(encoding="utf-8"))
    except WorkflowFormatError as exc:
        console.print(f"[red]✗ Could not parse {path}:[/red] {exc}")
        sys.exit(1)

    issues = collect_graph_issues(workflow, build_default_registry())
    if not issues:
        console.print(Panel.fit(
            f"[green]✓ {workflow.name}[/green] is valid "
            f"({len(workflow.blocks)} blocks, {len(workflow.connections)} connections)",
            border_style="green",
        ))
        return

    table = Table(title=f"{len(issues)} issue(s) in {workflow.name}", box=box.ROUNDED)
    table.add_column("Code", style="red")
    table.add_column("Message")
    table.add_column("Connections", style="dim")
    for issue in issues:
        table.add_row(issue.code, issue.message, ", ".join(issue.connection_ids) or "-")
    console.print(table)
    sys.exit(1)


@cli.command()
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def config(fmt: str):
    """
    Show current configuration.

    Displays values loaded from AUTOMATION_* environment variables and .env.
    """
    from shared.config import config as automation_config

    settings = [
        ("log_level", "AUTOMATION_LOG_LEVEL"),
        ("handshake_timeout_seconds", "AUTOMATION_HANDSHAKE_TIMEOUT_SECONDS"),
        ("run_timeout_seconds", "AUTOMATION_RUN_TIMEOUT_SECONDS"),
        ("payment_description", "AUTOMATION_PAYMENT_DESCRIPTION"),
    ]

    if fmt == 'json':
        click.echo(json.dumps({attr: getattr(automation_config, attr) for attr, _ in settings}, indent=2, default=str))
        return

    table = Table(title="Automation Configuration", box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Env Variable", style="dim")
    table.add_column("Value")
    for attr, env_var in settings:
        value = getattr(automation_config, attr)
        table.add_row(attr, env_var, "[dim]not set[/dim]" if value is None else str(value))
    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
