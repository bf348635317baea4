"""
Root Typer application for the outpost-spine CLI.

Each ``invoke`` performs exactly one invocation, like the scheduler does.
To drive an operation to completion, feed the printed ``callbackState``
back with ``--state`` until the status is no longer IN_PROGRESS.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from outpost_spine.cli.utils import console, err_console, load_json, render_envelope
from outpost_spine.core.errors import ResourceNotRegisteredError
from outpost_spine.core.logging import configure_logging
from outpost_spine.core.settings import get_settings
from outpost_spine.orchestration import OperationKind, OperationStatus, Orchestrator, get_resource, list_resources

app = typer.Typer(
    name="outpost-spine",
    help="outpost-spine — resumable provisioning handlers for S3 on Outposts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from outpost_spine import __version__

        typer.echo(f"outpost-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override OUTPOST_SPINE_LOG_LEVEL."),
) -> None:
    """outpost-spine CLI — invoke resource handlers and inspect the registry."""
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("resources")
def resources() -> None:
    """List registered resource types and their operations."""
    table = Table(title="Resource types")
    table.add_column("Type", style="cyan")
    table.add_column("Operations")
    table.add_column("Description", style="dim")
    for type_name in list_resources():
        definition = get_resource(type_name)
        table.add_row(type_name, ", ".join(op.value for op in definition.operations), definition.description)
    console.print(table)


@app.command("invoke")
def invoke(
    resource: str = typer.Argument(..., help="Resource type, e.g. AWS::S3Outposts::Bucket"),
    operation: str = typer.Argument(..., help="CREATE, READ, UPDATE, DELETE or LIST"),
    model: Path | None = typer.Option(None, "--model", "-m", help="Desired model JSON ('-' for stdin)"),
    previous: Path | None = typer.Option(None, "--previous", help="Previous model JSON (Update)"),
    state: Path | None = typer.Option(None, "--state", "-s", help="Callback state JSON from the last run"),
    next_token: str | None = typer.Option(None, "--next-token", help="Pagination token (List)"),
    account_id: str | None = typer.Option(None, "--account-id", help="Caller's AWS account id"),
    region: str | None = typer.Option(None, "--region", help="AWS region"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw envelope"),
) -> None:
    """Run one invocation and print the Progress Envelope."""
    try:
        definition = get_resource(resource)
    except ResourceNotRegisteredError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e.message}")
        raise typer.Exit(code=2) from e

    try:
        action = OperationKind.parse(operation)
    except ValueError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e}")
        raise typer.Exit(code=2) from e

    payload = {
        "typeName": definition.type_name,
        "action": action.value,
        "desiredResourceState": load_json(model),
        "previousResourceState": load_json(previous),
        "callbackContext": load_json(state),
        "nextToken": next_token,
        "awsAccountId": account_id,
        "region": region,
    }
    envelope = Orchestrator(definition).handle_payload(payload)
    render_envelope(envelope, as_json=as_json)
    if envelope.status == OperationStatus.FAILED:
        raise typer.Exit(code=1)


@app.command("config")
def show_config() -> None:
    """Show effective engine settings."""
    console.print_json(get_settings().model_dump_json())
