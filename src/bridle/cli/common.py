"""Helpers shared by CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console

from bridle.errors import BridleError
from bridle.harness import Harness
from bridle.manager import ProfileManager
from bridle.settings import BridleSettings, get_config_file, load_settings

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

HARNESS_ARGUMENT = typer.Argument(..., help="Harness id: claude-code, opencode, goose or amp-code")
JSON_OPTION = typer.Option(False, "--json", help="Print machine-readable JSON")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn engine errors into a message and exit code 1."""
    try:
        yield
    except BridleError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        logger.debug("Command failed", exc_info=True)
        raise typer.Exit(code=1) from e


def load_cli_settings() -> BridleSettings:
    with handle_errors():
        return load_settings(get_config_file())


def get_manager(settings: BridleSettings | None = None) -> ProfileManager:
    settings = settings or load_cli_settings()
    return ProfileManager(settings, settings_path=get_config_file())


def resolve_harness(value: str | None, settings: BridleSettings | None = None) -> Harness:
    """Pick the harness named on the command line, or the configured default."""
    choice = value or (settings.default_harness if settings else None)
    if choice is None:
        err_console.print(
            "[red]No harness given.[/red] Pass one or set a default with:\n"
            "  bridle config set default_harness <harness>"
        )
        raise typer.Exit(code=1)
    try:
        return Harness.parse(choice)
    except ValueError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e
