"""Status command: what has been configured and whether the services answer."""

import logging

import httpx
import typer
from rich.panel import Panel

from .. import settings
from ..discovery import discover
from ..exceptions import DiscoveryError
from ..models import DeploymentState
from ..pipeline.connections import plugin_display_name
from ..state import StateStore, friendly_time
from .common import backend_url, console

logger = logging.getLogger(__name__)


def check_service(url: str, transport: httpx.BaseTransport | None = None) -> str:
    """Ping a service URL and return a one-word verdict with an icon.

    ✅ for 2xx/3xx, ⚠️ with the status code otherwise, ❌ when unreachable.
    """
    try:
        with httpx.Client(
            timeout=settings.SERVICE_CHECK_TIMEOUT, transport=transport
        ) as client:
            response = client.get(url)
    except httpx.RequestError as e:
        logger.debug(f"{url} unreachable: {e}")
        return "❌ unreachable"
    if response.status_code < 400:
        return "✅ ok"
    return f"⚠️  HTTP {response.status_code}"


def service_urls(state: DeploymentState) -> list[tuple[str, str, str]]:
    """(label, display URL, probe URL) for every endpoint the state records."""
    endpoints = state.endpoints
    services = []
    if endpoints.backend:
        backend = endpoints.backend.rstrip("/")
        services.append(("Backend", backend, f"{backend}/ping"))
    if endpoints.grafana:
        grafana = endpoints.grafana.rstrip("/")
        services.append(("Grafana", grafana, f"{grafana}/api/health"))
    if endpoints.config_ui:
        config_ui = endpoints.config_ui.rstrip("/")
        services.append(("Config UI", config_ui, config_ui))
    return services


def render_status(state_name: str, state: DeploymentState) -> None:
    lines = [f"State file: [cyan]{state_name}[/cyan]"]
    if state.method:
        lines.append(f"Method: {state.method}")
    if state.deployed_at:
        lines.append(f"Deployed: {friendly_time(state.deployed_at)}")
    console.print()
    console.print(Panel("\n".join(lines), title="Deployment", border_style="blue"))

    console.print("\n[bold]Services[/bold]")
    services = service_urls(state)
    if not services:
        console.print("  [dim]No endpoints recorded[/dim]")
    for label, url, probe in services:
        console.print(f"  {label:<10} {check_service(probe)}  [dim]{url}[/dim]")

    console.print("\n[bold]Connections[/bold]")
    if not state.connections:
        console.print("  [dim]None configured (run 'devlake-setup configure connections')[/dim]")
    for connection in state.connections:
        line = (
            f"  {plugin_display_name(connection.plugin)}  "
            f"ID={connection.connection_id}  \"{connection.name}\""
        )
        if connection.organization:
            line += f"  [dim]org: {connection.organization}[/dim]"
        if connection.enterprise:
            line += f"  [dim]enterprise: {connection.enterprise}[/dim]"
        console.print(line)
    if state.connections_configured_at:
        console.print(f"  [dim]Configured {friendly_time(state.connections_configured_at)}[/dim]")

    console.print("\n[bold]Project[/bold]")
    if state.project is None:
        console.print("  [dim]None configured (run 'devlake-setup configure project')[/dim]")
    else:
        console.print(
            f"  {state.project.name}  [dim]Blueprint ID: {state.project.blueprint_id}[/dim]"
        )
        if state.project.repos:
            console.print(f"  Repos: {', '.join(state.project.repos)}")
        if state.scopes_configured_at:
            console.print(f"  [dim]Configured {friendly_time(state.scopes_configured_at)}[/dim]")
    console.print()


def status(ctx: typer.Context):
    """Show the deployment state and check that services are reachable."""
    store = StateStore()
    try:
        found = store.find()
    except OSError as e:
        console.print(f"[red]Error:[/red] Could not read state file: {e}")
        raise typer.Exit(1) from e

    if found is not None:
        path, state = found
        render_status(path.name, state)
        return

    console.print("\n[yellow]No state file found in this directory.[/yellow]")
    console.print("🔍 Discovering DevLake instance...")
    try:
        result = discover(backend_url(ctx))
    except DiscoveryError as e:
        console.print(f"\n[red]❌[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"\n[green]✅[/green] DevLake reachable at {result.url} (via {result.source})")
    if result.grafana_url:
        console.print(f"   Grafana: {result.grafana_url}  {check_service(f'{result.grafana_url}/api/health')}")
    console.print("\n[dim]Next: devlake-setup configure full[/dim]")
