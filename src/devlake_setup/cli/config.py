"""Configuration management commands for devlake-setup."""

import typer
from rich.panel import Panel

from ..config_manager import VALID_SETTINGS, ConfigManager
from ..exceptions import KeyringUnavailableError, ValidationError
from ..pipeline.connections import require_plugin
from ..registry import PLUGINS
from .common import console, fail

config_app = typer.Typer(
    help="Manage configuration settings",
    no_args_is_help=True,
)


@config_app.command("show")
def config_show():
    """Show current configuration."""
    config_manager = ConfigManager()
    config = config_manager.load_config()

    console.print()
    console.print("[bold]Current Configuration[/bold]")
    console.print(f"[dim]{config_manager.config_file}[/dim]")
    console.print()

    console.print("[cyan]DevLake:[/cyan]")
    console.print(f"  Default URL: [yellow]{config.get('default_url') or 'Not set'}[/yellow]")
    console.print()

    console.print("[cyan]Settings:[/cyan]")
    for key, value in config.get("settings", {}).items():
        console.print(f"  {key}: [yellow]{value}[/yellow]")
    console.print()

    console.print("[cyan]Stored tokens:[/cyan]")
    for descriptor in PLUGINS:
        if not descriptor.available:
            continue
        try:
            stored = config_manager.get_token(descriptor.plugin) is not None
        except KeyringUnavailableError:
            console.print(f"  {descriptor.display_name}: [yellow]keyring unavailable[/yellow]")
            continue
        console.print(
            f"  {descriptor.display_name}: [{'green' if stored else 'dim'}]{'Yes' if stored else 'No'}[/]"
        )
    console.print()

    console.print("[dim]Use 'devlake-setup config set <key> <value>' to change settings[/dim]")
    console.print()


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        ..., help="Setting key ('pipeline_timeout' or 'request_timeout')"
    ),
    value: str = typer.Argument(..., help="Setting value"),
):
    """Set a configuration value."""
    if key not in VALID_SETTINGS:
        console.print(f"[red]Error:[/red] Unknown setting '{key}'")
        console.print("\n[bold]Valid settings:[/bold]")
        for setting_key in VALID_SETTINGS:
            console.print(f"  • {setting_key}")
        raise typer.Exit(1)

    try:
        parsed_value = VALID_SETTINGS[key](value)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid value for {key}: {e}")
        raise typer.Exit(1) from e
    if parsed_value <= 0:
        console.print(f"[red]Error:[/red] {key} must be a positive number of seconds")
        raise typer.Exit(1)

    ConfigManager().set_setting(key, parsed_value)

    console.print(
        Panel(
            f"[green]✓[/green] Setting updated\n\n[dim]{key} = {parsed_value}[/dim]",
            title="Configuration",
            border_style="green",
        )
    )


@config_app.command("set-url")
def config_set_url(
    url: str = typer.Argument(..., help="DevLake API base URL, e.g. http://localhost:8080"),
):
    """Set the default DevLake URL used when --url is not given."""
    if not url.startswith(("http://", "https://")):
        console.print("[red]Error:[/red] URL must start with http:// or https://")
        raise typer.Exit(1)

    config_manager = ConfigManager()
    config_manager.set_default_url(url)
    console.print(
        Panel(
            f"[green]✓[/green] Default URL set\n\n[dim]{config_manager.get_default_url()}[/dim]",
            title="Configuration",
            border_style="green",
        )
    )


@config_app.command("unset-url")
def config_unset_url():
    """Forget the default DevLake URL."""
    ConfigManager().set_default_url(None)
    console.print("[green]✓[/green] Default URL removed")


@config_app.command("forget-token")
def config_forget_token(
    plugin: str = typer.Argument(..., help="Plugin slug (e.g. github, gh-copilot)"),
):
    """Remove a token stored with --remember-token."""
    try:
        descriptor = require_plugin(plugin)
        removed = ConfigManager().delete_token(descriptor.plugin)
    except (ValidationError, KeyringUnavailableError) as e:
        raise fail(e) from e

    if removed:
        console.print(f"[green]✓[/green] Removed stored {descriptor.display_name} token")
    else:
        console.print(f"[dim]No stored {descriptor.display_name} token[/dim]")
