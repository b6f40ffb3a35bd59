"""Status CLI command."""

from __future__ import annotations

import json

import typer
from rich.table import Table

from bridle.cli.common import JSON_OPTION, console, get_manager, handle_errors
from bridle.harness import Harness

status_app = typer.Typer(name="status", help="Show harness and profile status")


@status_app.callback(invoke_without_command=True)
def show_status(as_json: bool = JSON_OPTION) -> None:
    """Show each harness's live config and active profile."""
    manager = get_manager()
    with handle_errors():
        statuses = [manager.harness_status(harness) for harness in Harness]

    if as_json:
        typer.echo(json.dumps([status.model_dump(mode="json") for status in statuses], indent=2))
        return

    table = Table(title="Harnesses", show_header=True, header_style="bold magenta")
    table.add_column("Harness", style="cyan", no_wrap=True)
    table.add_column("Installed", style="yellow")
    table.add_column("Config", style="white")
    table.add_column("Active", style="green")
    table.add_column("Profiles", style="dim")

    for status in statuses:
        table.add_row(
            status.display_name,
            "yes" if status.installed else "no",
            str(status.config_file) if status.config_file else "-",
            status.active_profile or "-",
            str(len(status.profiles)),
        )
    console.print(table)
