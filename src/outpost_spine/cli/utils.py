"""
CLI utility helpers — JSON input and envelope rendering.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from outpost_spine.orchestration import OperationStatus, ProgressEnvelope

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {
    OperationStatus.SUCCESS: "green",
    OperationStatus.IN_PROGRESS: "yellow",
    OperationStatus.FAILED: "red",
}


def load_json(path: Path | None) -> dict[str, Any] | None:
    """Read a JSON object from ``path``; ``-`` reads stdin."""
    if path is None:
        return None
    text = typer.get_text_stream("stdin").read() if str(path) == "-" else path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        err_console.print(f"[bold red]Error[/bold red]: {path} is not valid JSON ({e})")
        raise typer.Exit(code=2) from e
    if not isinstance(data, dict):
        err_console.print(f"[bold red]Error[/bold red]: {path} must contain a JSON object")
        raise typer.Exit(code=2)
    return data


def render_envelope(envelope: ProgressEnvelope, *, as_json: bool = False) -> None:
    payload = envelope.to_dict()
    if as_json:
        console.print_json(json.dumps(payload, default=str))
        return

    style = _STATUS_STYLE[envelope.status]
    console.print(f"[bold {style}]{envelope.status.value}[/bold {style}]")

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    if envelope.outcome_code is not None:
        table.add_row("Outcome", envelope.outcome_code.value)
    if envelope.message:
        table.add_row("Message", envelope.message)
    if envelope.requested_delay_seconds:
        table.add_row("Delay", f"{envelope.requested_delay_seconds}s")
    if envelope.next_token:
        table.add_row("Next token", envelope.next_token)
    if envelope.models is not None:
        table.add_row("Models", str(len(envelope.models)))
    console.print(table)

    for key in ("model", "callbackState"):
        if payload.get(key):
            console.print(f"[bold]{key}[/bold]")
            console.print_json(json.dumps(payload[key], default=str))
