"""Init CLI command."""

from __future__ import annotations

import typer

from bridle.cli.common import console, get_manager, handle_errors, load_cli_settings
from bridle.harness import Harness
from bridle.settings import get_config_file, modify_settings

init_app = typer.Typer(name="init", help="Set up bridle and snapshot existing configs")


@init_app.callback(invoke_without_command=True)
def init() -> None:
    """Write a config file and create a 'default' profile for each configured harness."""
    settings = load_cli_settings()
    config_file = get_config_file()
    manager = get_manager(settings)

    with handle_errors():
        if not config_file.exists():
            modify_settings(lambda current: current, config_file, settings.lock_timeout)
            console.print(f"[green]✓[/green] Wrote [dim]{config_file}[/dim]")

        for harness in Harness:
            if manager.create_default_if_missing(harness):
                console.print(f"[green]✓[/green] {harness.display_name}: created 'default'")
            else:
                console.print(f"[dim]{harness.display_name}: nothing to do[/dim]")
