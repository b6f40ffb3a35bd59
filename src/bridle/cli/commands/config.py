"""Configuration management commands."""

import typer
from rich.table import Table

from bridle.cli.common import console, handle_errors, load_cli_settings
from bridle.settings import SETTING_KEYS, get_config_file, modify_settings, update_setting

config_app = typer.Typer(
    name="config",
    help="Manage bridle settings",
)


@config_app.command("show")
def config_show() -> None:
    """Display current settings."""
    settings = load_cli_settings()

    table = Table(title="Bridle Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for key in SETTING_KEYS:
        value = getattr(settings, key)
        table.add_row(key, "-" if value is None else str(value))
    for harness, name in sorted(settings.active.items()):
        table.add_row(f"active.{harness}", name)

    console.print(table)
    console.print(f"\nConfig file: [dim]{get_config_file()}[/dim]")


@config_app.command("get")
def config_get(
    key: str = typer.Argument(..., help="Setting to read"),
) -> None:
    """Print a single setting."""
    settings = load_cli_settings()
    if key not in SETTING_KEYS:
        console.print(f"[red]Unknown setting '{key}'.[/red] Known: {', '.join(SETTING_KEYS)}")
        raise typer.Exit(code=1)
    value = getattr(settings, key)
    if isinstance(value, bool):
        typer.echo(str(value).lower())
    else:
        typer.echo("" if value is None else str(value))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting to change"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set a configuration value.

    Examples:
        bridle config set editor "code --wait"
        bridle config set profile_marker true
    """
    settings = load_cli_settings()
    with handle_errors():
        modify_settings(
            lambda current: update_setting(current, key, value),
            get_config_file(),
            settings.lock_timeout,
        )
    console.print(f"[green]✓[/green] Set [cyan]{key}[/cyan] = [green]{value}[/green]")
