"""Display helper functions for CLI output."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models import Connection
from ..pipeline.connections import ConnectionResult, plugin_display_name
from ..pipeline.orchestrator import FinalizeResult
from ..pipeline.poller import PollOutcome


def display_connections_summary(console: Console, results: list[ConnectionResult]) -> None:
    """Summarize the connections configured in this run."""
    lines = ["[bold green]✓ Connections configured successfully![/bold green]\n"]
    for result in results:
        line = (
            f"{plugin_display_name(result.plugin)}: "
            f"ID=[cyan]{result.connection_id}[/cyan]  \"{result.name}\""
        )
        if result.organization:
            line += f"  [dim]org: {result.organization}[/dim]"
        if result.enterprise:
            line += f"  [dim]enterprise: {result.enterprise}[/dim]"
        lines.append(line)
    lines.append("\n[dim]Next: devlake-setup configure scopes[/dim]")

    console.print()
    console.print(Panel("\n".join(lines), title="Connections", border_style="green"))


def display_project_summary(console: Console, result: FinalizeResult) -> None:
    """Summarize the project, its schedule and the first sync."""
    lines = ["[bold green]✓ Project configured successfully![/bold green]\n"]
    lines.append(f"Project: [bold cyan]{result.project_name}[/bold cyan]")
    lines.append(f"Blueprint ID: [dim]{result.blueprint_id}[/dim]")
    lines.append(f"Schedule: [yellow]{result.cron}[/yellow] | Data since: {result.time_after}")
    if result.repos:
        lines.append(f"Repos: {', '.join(result.repos)}")
    for plugin_name in result.plugin_names:
        lines.append(f"Plugin: {plugin_name}")

    if result.poll is not None:
        if result.poll.outcome == PollOutcome.COMPLETED:
            lines.append("\n[green]First data sync completed[/green]")
        elif result.poll.outcome == PollOutcome.TIMED_OUT:
            lines.append(
                f"\n[yellow]First sync still running[/yellow] "
                f"[dim](GET /pipelines/{result.poll.pipeline_id})[/dim]"
            )
        else:
            lines.append(f"\nFirst sync started (pipeline {result.poll.pipeline_id})")

    console.print()
    console.print(Panel("\n".join(lines), title="Project", border_style="green"))


def connections_table(rows: list[tuple[str, Connection]]) -> Table:
    """Table of (plugin, connection) rows."""
    table = Table(title="DevLake Connections", show_header=True, expand=True)
    table.add_column("Plugin", style="magenta", no_wrap=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold white")
    table.add_column("Endpoint", style="dim", overflow="fold")
    table.add_column("Organization", style="yellow")
    table.add_column("Enterprise", style="yellow")

    for plugin, connection in rows:
        table.add_row(
            plugin,
            str(connection.id),
            connection.name,
            connection.endpoint,
            connection.organization or "-",
            connection.enterprise or "-",
        )
    return table
