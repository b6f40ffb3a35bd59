"""Profile CLI commands."""

from __future__ import annotations

import json

import typer
from rich.panel import Panel
from rich.table import Table

from bridle.cli.common import (
    HARNESS_ARGUMENT,
    JSON_OPTION,
    console,
    get_manager,
    handle_errors,
    load_cli_settings,
    resolve_harness,
)
from bridle.diff import ChangeKind, DiffResult
from bridle.harness import Harness
from bridle.manager import ProfileView
from bridle.models import ResourceCategory

profile_app = typer.Typer(name="profile", help="Create, switch and inspect profiles")

NAME_ARGUMENT = typer.Argument(..., help="Profile name")

_KIND_STYLES = {
    ChangeKind.ADDED: ("+", "green"),
    ChangeKind.REMOVED: ("-", "red"),
    ChangeKind.CHANGED: ("~", "yellow"),
}


def _short(value: object) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return text if len(text) <= 60 else f"{text[:57]}..."


def _render_profile(view: ProfileView) -> None:
    details = Table(show_header=False, box=None)
    details.add_column("Field", style="cyan", no_wrap=True)
    details.add_column("Value", style="green")
    details.add_row("Harness", view.harness.display_name)
    details.add_row("Active", "yes" if view.is_active else "no")
    details.add_row("Path", str(view.path))
    details.add_row("Config file", view.config_file or "-")
    details.add_row("Rules file", view.rules_file or "-")
    details.add_row("Model", view.config.model or "-")
    details.add_row("Theme", view.config.theme or "-")
    console.print(Panel(details, title=f"Profile: {view.name}", expand=False))

    table = Table(title="Resources", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Enabled", style="yellow")
    table.add_column("Note", style="dim")

    for category in ResourceCategory:
        for entry in view.manifest.entries(category):
            note = f"declared as '{entry.declared_name}'" if entry.sanitized else ""
            source = view.manifest.source_for(category, entry.name)
            if source:
                note = f"{note} from {source}".strip()
            table.add_row(category.value, entry.name, "yes" if entry.enabled else "no", note)
    for item in view.manifest.unsupported:
        table.add_row(item.category.value, f"[dim]{item.name}[/dim]", "no", item.reason)

    if table.row_count:
        console.print(table)
    else:
        console.print("No resources.")

    for error in view.errors:
        console.print(f"[yellow]Warning:[/yellow] {error}")


def _render_diff(result: DiffResult) -> None:
    if result.is_empty:
        console.print(f"Profiles '{result.left}' and '{result.right}' are identical.")
        return

    table = Table(
        title=f"{result.left} -> {result.right}", show_header=True, header_style="bold magenta"
    )
    table.add_column("", no_wrap=True)
    table.add_column("Path", style="cyan")
    table.add_column("Before", style="red")
    table.add_column("After", style="green")
    for entry in result.entries:
        marker, style = _KIND_STYLES[entry.kind]
        table.add_row(
            f"[{style}]{marker}[/{style}]", entry.path, _short(entry.before), _short(entry.after)
        )
    console.print(table)


@profile_app.command("list")
def list_profiles(
    harness: str | None = typer.Argument(None, help="Harness id; all harnesses when omitted"),
    as_json: bool = JSON_OPTION,
) -> None:
    """List profiles."""
    settings = load_cli_settings()
    manager = get_manager(settings)
    if harness is None and settings.default_harness is None:
        targets = list(Harness)
    else:
        targets = [resolve_harness(harness, settings)]

    with handle_errors():
        rows = [
            (target, name, manager.active_profile(target) == name)
            for target in targets
            for name in manager.list_profiles(target)
        ]

    if as_json:
        payload = [
            {"harness": target.value, "name": str(name), "active": active}
            for target, name, active in rows
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not rows:
        console.print("No profiles found.")
        return

    table = Table(title="Profiles", show_header=True, header_style="bold magenta")
    table.add_column("Harness", style="cyan", no_wrap=True)
    table.add_column("Profile", style="green")
    table.add_column("Active", style="yellow")
    for target, name, active in rows:
        table.add_row(target.value, str(name), "*" if active else "")
    console.print(table)


@profile_app.command("show")
def show_profile(
    harness: str = HARNESS_ARGUMENT,
    name: str = NAME_ARGUMENT,
    as_json: bool = JSON_OPTION,
) -> None:
    """Show a profile's settings and resources."""
    target = resolve_harness(harness)
    manager = get_manager()
    with handle_errors():
        view = manager.show(target, name)

    if as_json:
        typer.echo(view.model_dump_json(indent=2))
        return
    _render_profile(view)


@profile_app.command("create")
def create_profile(
    harness: str = HARNESS_ARGUMENT,
    name: str = NAME_ARGUMENT,
    from_current: bool = typer.Option(
        False, "--from-current", "-c", help="Snapshot the harness's live configuration"
    ),
) -> None:
    """Create a profile."""
    target = resolve_harness(harness)
    manager = get_manager()
    with handle_errors():
        view = manager.create(target, name, from_current=from_current)

    console.print(f"[green]✓[/green] Created profile [cyan]{view.name}[/cyan]")
    for category, entry in view.manifest.sanitized_entries():
        console.print(
            f"[yellow]Note:[/yellow] {category.value} '{entry.declared_name}' "
            f"is stored as '{entry.name}'"
        )


@profile_app.command("switch")
def switch_profile(
    harness: str = HARNESS_ARGUMENT,
    name: str = NAME_ARGUMENT,
) -> None:
    """Make a profile the live configuration."""
    target = resolve_harness(harness)
    manager = get_manager()
    with handle_errors():
        manager.switch(target, name)
    console.print(f"[green]✓[/green] Switched {target.display_name} to [cyan]{name}[/cyan]")


@profile_app.command("delete")
def delete_profile(
    harness: str = HARNESS_ARGUMENT,
    name: str = NAME_ARGUMENT,
    force: bool = typer.Option(False, "--force", "-f", help="Delete even if the profile is active"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a profile."""
    target = resolve_harness(harness)
    manager = get_manager()
    if not yes and not typer.confirm(f"Delete profile '{name}' for {target.display_name}?"):
        raise typer.Exit(code=1)
    with handle_errors():
        manager.delete(target, name, force=force)
    console.print(f"[green]✓[/green] Deleted profile [cyan]{name}[/cyan]")


@profile_app.command("edit")
def edit_profile(
    harness: str = HARNESS_ARGUMENT,
    name: str = NAME_ARGUMENT,
    editor: str | None = typer.Option(None, "--editor", help="Editor command to use"),
) -> None:
    """Edit a profile's config file in an external editor."""
    target = resolve_harness(harness)
    manager = get_manager()
    with handle_errors():
        manager.edit_with_editor(target, name, editor)
    console.print(f"[green]✓[/green] Saved profile [cyan]{name}[/cyan]")


@profile_app.command("diff")
def diff_profiles(
    harness: str = HARNESS_ARGUMENT,
    left: str = typer.Argument(..., help="First profile"),
    right: str = typer.Argument(..., help="Second profile"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show structural differences between two profiles."""
    target = resolve_harness(harness)
    manager = get_manager()
    with handle_errors():
        result = manager.diff(target, left, right)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return
    _render_diff(result)
