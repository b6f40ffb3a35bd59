"""Main CLI application using Typer."""

import logging

import typer
from rich.console import Console

from bridle import __version__
from bridle.cli.commands.config import config_app
from bridle.cli.commands.init import init_app
from bridle.cli.commands.profile import profile_app
from bridle.cli.commands.status import status_app

app = typer.Typer(
    name="bridle",
    help="Bridle - switch between configuration profiles for AI coding harnesses",
    add_completion=False,
)
console = Console()

# Register subcommands
app.add_typer(profile_app, name="profile")
app.add_typer(config_app, name="config")
app.add_typer(status_app, name="status")
app.add_typer(init_app, name="init")


def version_callback(value: bool) -> None:
    """Show version information."""
    if value:
        console.print(f"Bridle version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Bridle CLI - manage harness configuration profiles."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    app()
