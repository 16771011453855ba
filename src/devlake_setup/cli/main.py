"""Main CLI application for devlake-setup."""

import logging

import typer
from rich.logging import RichHandler

from .. import settings
from .common import console
from .config import config_app
from .configure import configure_app
from .connection import connection_app
from .status_cmd import status

# Create main Typer app
app = typer.Typer(
    name="devlake-setup",
    help="Configure Apache DevLake connections, scopes and DORA projects",
    no_args_is_help=True,
)


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # Request lines from the HTTP stack are noise even in verbose mode
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{settings.APP_NAME} {settings.VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    url: str | None = typer.Option(
        None, "--url", help="DevLake API base URL (skips discovery)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """Configure Apache DevLake for DORA metrics."""
    configure_logging(verbose)
    ctx.obj = {"url": url, "verbose": verbose}


# Register sub-applications
app.add_typer(configure_app, name="configure")
app.add_typer(connection_app, name="connection")
app.add_typer(config_app, name="config")

# Register status command
app.command("status")(status)
