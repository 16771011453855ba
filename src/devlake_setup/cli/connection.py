"""Connection management commands: list, test, update, delete."""

import logging

import typer
from rich.panel import Panel

from ..exceptions import DevLakeAPIError, DevLakeSetupError, ValidationError
from ..input_helpers import prompt_text, select_one
from ..models import Connection, ConnectionUpdateRequest
from ..pipeline import ConfigurationPipeline
from ..pipeline.connections import discover_connections, plugin_display_name, require_plugin
from ..registry import available_plugins
from ..tokens import mask_token
from .common import console, fail, open_pipeline
from .display import connections_table

logger = logging.getLogger(__name__)

connection_app = typer.Typer(
    help="List, test, update and delete plugin connections",
    no_args_is_help=True,
)


def check_connection_flags(plugin: str | None, connection_id: int | None) -> None:
    """--plugin and --id go together; an unknown plugin fails before any request.

    Raises:
        ValidationError: If only one of the flags is given or the plugin is unknown.
    """
    if bool(plugin) != bool(connection_id):
        raise ValidationError(
            "--plugin and --id must be given together", field="plugin" if not plugin else "id"
        )
    if plugin:
        require_plugin(plugin)


def pick_connection(
    pipeline: ConfigurationPipeline, plugin: str | None, connection_id: int | None
) -> tuple[str, int]:
    """Return the (plugin, id) from flags, or let the user choose one."""
    if plugin and connection_id:
        return plugin, connection_id
    if not pipeline.tty:
        raise ValidationError(
            "--plugin and --id are required when not running interactively", field="plugin"
        )

    choices = discover_connections(pipeline.client, pipeline.state)
    if not choices:
        raise ValidationError(
            "No connections found; run 'devlake-setup configure connections' first"
        )
    labels = [c.label for c in choices]
    chosen = select_one("Which connection?", labels)
    if chosen is None:
        raise ValidationError("A connection must be selected", field="id")
    choice = choices[labels.index(chosen)]
    return choice.plugin, choice.connection_id


def _show_connection(plugin: str, connection: Connection) -> None:
    lines = [
        f"Plugin: {plugin_display_name(plugin)}",
        f"ID: [cyan]{connection.id}[/cyan]",
        f"Name: {connection.name}",
        f"Endpoint: {connection.endpoint or '-'}",
        f"Token: {mask_token(connection.token) if connection.token else '-'}",
        f"Organization: {connection.organization or '-'}",
        f"Enterprise: {connection.enterprise or '-'}",
        f"Proxy: {connection.proxy or '-'}",
    ]
    console.print()
    console.print(Panel("\n".join(lines), title="Current Connection", border_style="blue"))


@connection_app.command("list")
def connection_list(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Only list this plugin"),
):
    """List connections for every available plugin."""
    try:
        descriptors = [require_plugin(plugin)] if plugin else available_plugins()
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    rows: list[tuple[str, Connection]] = []
    try:
        for descriptor in descriptors:
            try:
                listed = pipeline.client.list_connections(descriptor.plugin)
            except DevLakeAPIError as e:
                logger.warning(f"Could not list {descriptor.plugin} connections: {e}")
                console.print(
                    f"[yellow]⚠️  Could not list {descriptor.display_name} connections: {e}[/yellow]"
                )
                continue
            rows.extend((descriptor.plugin, c) for c in listed)
    finally:
        pipeline.close()

    if not rows:
        console.print("\n[yellow]No connections found.[/yellow]")
        console.print("[dim]Run 'devlake-setup configure connections' to create one[/dim]")
        return

    console.print()
    console.print(connections_table(rows))


@connection_app.command("test")
def connection_test(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Plugin slug"),
    connection_id: int | None = typer.Option(None, "--id", help="Connection ID"),
):
    """Test a saved connection."""
    try:
        check_connection_flags(plugin, connection_id)
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        plugin, connection_id = pick_connection(pipeline, plugin, connection_id)
        console.print(f"\n🔑 Testing {plugin_display_name(plugin)} connection {connection_id}...")
        result = pipeline.client.test_saved_connection(plugin, connection_id)
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()

    if not result.success:
        console.print(f"\n[red]✗[/red] Connection test failed: {result.message or 'unknown error'}")
        raise typer.Exit(1)
    console.print("\n[green]✓[/green] Connection test passed")


@connection_app.command("update")
def connection_update(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Plugin slug"),
    connection_id: int | None = typer.Option(None, "--id", help="Connection ID"),
    name: str | None = typer.Option(None, "--name", help="New connection name"),
    token: str | None = typer.Option(None, "--token", help="New personal access token"),
    org: str | None = typer.Option(None, "--org", help="New organization slug"),
    enterprise: str | None = typer.Option(None, "--enterprise", help="New enterprise slug"),
    endpoint: str | None = typer.Option(None, "--endpoint", help="New API endpoint"),
    proxy: str | None = typer.Option(None, "--proxy", help="New HTTP proxy"),
):
    """Update fields of an existing connection and re-test it."""
    flag_mode = bool(plugin or connection_id)
    try:
        check_connection_flags(plugin, connection_id)
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        plugin, connection_id = pick_connection(pipeline, plugin, connection_id)
        current = pipeline.client.get_connection(plugin, connection_id)
        _show_connection(plugin, current)

        if not flag_mode:
            console.print("\n[dim]Press Enter to keep the current value[/dim]")
            name = prompt_text("Name", current.name)
            new_token = typer.prompt(
                "Token (leave empty to keep)", default="", hide_input=True, show_default=False
            )
            token = new_token.strip() or None
            org = prompt_text("Organization", current.organization)
            enterprise = prompt_text("Enterprise", current.enterprise)
            endpoint = prompt_text("Endpoint", current.endpoint)
            proxy = prompt_text("Proxy", current.proxy)

        request = ConnectionUpdateRequest(
            name=name if name is not None and name != current.name else None,
            token=token or None,
            auth_method="AccessToken" if token else None,
            organization=org if org is not None and org != current.organization else None,
            enterprise=(
                enterprise if enterprise is not None and enterprise != current.enterprise else None
            ),
            endpoint=endpoint if endpoint is not None and endpoint != current.endpoint else None,
            proxy=proxy if proxy is not None and proxy != current.proxy else None,
        )
        if request.is_empty():
            console.print("\n[yellow]Nothing to update.[/yellow]")
            return

        console.print("\n✏️  Updating connection...")
        updated = pipeline.client.update_connection(plugin, connection_id, request)
        console.print(f"   [green]✅[/green] Connection {connection_id} updated")

        console.print("   🔑 Re-testing connection...")
        try:
            result = pipeline.client.test_saved_connection(plugin, connection_id)
        except DevLakeAPIError as e:
            logger.warning(f"Connection test after update failed: {e}")
            console.print(f"   [yellow]⚠️  Connection test failed: {e}[/yellow]")
        else:
            if result.success:
                console.print("   [green]✅[/green] Connection test passed")
            else:
                console.print(
                    f"   [yellow]⚠️  Connection test failed: {result.message or 'unknown error'}[/yellow]"
                )

        for recorded in pipeline.state.connections:
            if recorded.plugin == plugin and recorded.connection_id == connection_id:
                recorded.name = updated.name or request.name or recorded.name
                if request.organization is not None:
                    recorded.organization = request.organization or None
                if request.enterprise is not None:
                    recorded.enterprise = request.enterprise or None
                pipeline.save_connections(pipeline.state.connections)
                break
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()


@connection_app.command("delete")
def connection_delete(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Plugin slug"),
    connection_id: int | None = typer.Option(None, "--id", help="Connection ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
):
    """Delete a connection and drop it from the state file."""
    try:
        check_connection_flags(plugin, connection_id)
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        plugin, connection_id = pick_connection(pipeline, plugin, connection_id)

        if not force:
            confirmed = typer.confirm(
                f"Delete {plugin_display_name(plugin)} connection {connection_id}?",
                default=False,
            )
            if not confirmed:
                console.print("[yellow]Cancelled[/yellow]")
                raise typer.Exit(0)

        pipeline.client.delete_connection(plugin, connection_id)
        console.print(f"\n[green]✓[/green] Deleted connection {connection_id}")

        remaining = [
            c
            for c in pipeline.state.connections
            if not (c.plugin == plugin and c.connection_id == connection_id)
        ]
        if len(remaining) != len(pipeline.state.connections):
            pipeline.save_connections(remaining)
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()
