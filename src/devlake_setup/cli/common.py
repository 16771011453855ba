"""Helpers shared by the CLI command modules."""

import questionary
import typer
from rich.console import Console

from .. import settings
from ..config_manager import ConfigManager
from ..exceptions import KeyringUnavailableError, ValidationError
from ..input_helpers import is_interactive
from ..pipeline import ConfigurationPipeline, connect
from ..pipeline.connections import require_plugin
from ..registry import PLUGINS, PluginDescriptor, available_slugs

console = Console()


def print_banner(title: str) -> None:
    console.print()
    console.print("═" * 40)
    console.print(f"  [bold]{title}[/bold]")
    console.print("═" * 40)


def fail(error: Exception) -> typer.Exit:
    """Print an error the way every command reports it, and return the exit."""
    console.print(f"\n[red]Error:[/red] {error}")
    if isinstance(error, KeyringUnavailableError) and error.instructions:
        console.print(f"\n[dim]{error.instructions}[/dim]")
    return typer.Exit(1)


def backend_url(ctx: typer.Context) -> str | None:
    """--url if given, otherwise the stored default URL."""
    url = (ctx.obj or {}).get("url")
    if url:
        return url
    return ConfigManager().get_default_url()


def open_pipeline(ctx: typer.Context) -> ConfigurationPipeline:
    config_manager = ConfigManager()
    timeout = config_manager.get_setting("request_timeout")
    kwargs = {"config_manager": config_manager}
    if timeout:
        kwargs["request_timeout"] = timeout
    return connect(backend_url(ctx), **kwargs)


def pipeline_timeout(flag_value: int | None) -> int:
    if flag_value:
        return flag_value
    return ConfigManager().get_setting("pipeline_timeout") or settings.PIPELINE_TIMEOUT


def choose_plugins(plugin: str | None, prompt: str, multiple: bool = True) -> list[PluginDescriptor]:
    """Resolve --plugin, or let the user pick from the registry.

    Plugins that are not available yet are shown as "coming soon" and cannot
    be selected.

    Raises:
        ValidationError: If the plugin is unknown or nothing was selected.
    """
    if plugin:
        return [require_plugin(plugin)]

    if not is_interactive():
        raise ValidationError(
            f"--plugin is required when not running interactively (choose: {', '.join(available_slugs())})",
            field="plugin",
        )

    choices = [
        questionary.Choice(
            title=d.display_name,
            value=d.plugin,
            disabled=None if d.available else "coming soon",
        )
        for d in PLUGINS
    ]
    if multiple:
        selected = questionary.checkbox(prompt, choices=choices).ask() or []
    else:
        answer = questionary.select(prompt, choices=choices, use_arrow_keys=True).ask()
        selected = [answer] if answer else []

    if not selected:
        raise ValidationError("At least one plugin must be selected", field="plugin")
    return [require_plugin(slug) for slug in selected]
