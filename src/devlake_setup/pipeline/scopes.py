"""
Scope configuration
Attaches repositories or organizations (plus the DORA scope config) to connections
"""

import logging

from pydantic import BaseModel, Field
from rich.console import Console

from .. import settings
from ..client import DevLakeClient
from ..exceptions import DevLakeAPIError, NoScopedConnectionsError, ValidationError
from ..models import BlueprintConnection, RefdiffConfig, ScopeConfig
from ..options import ScopeOptions
from ..registry import PluginDescriptor, find_plugin
from ..scope_handlers import ScopeHandler, ScopeRequest, default_blueprint_scope
from .connections import plugin_display_name

logger = logging.getLogger(__name__)
console = Console()


class ScopeResult(BaseModel):
    """Blueprint entry for one scoped connection and the repos it covers."""

    connection: BlueprintConnection
    repos: list[str] = Field(default_factory=list)

    @property
    def summary(self) -> str:
        return (
            f"{plugin_display_name(self.connection.plugin_name)} "
            f"(ID: {self.connection.connection_id}, {len(self.connection.scopes)} scope(s))"
        )


class ScopeConfigurator:
    """Resolves scope selections and upserts them on a connection."""

    def __init__(self, client: DevLakeClient):
        self.client = client

    def ensure_scope_config(
        self, plugin: str, connection_id: int, options: ScopeOptions
    ) -> int:
        """Create the DORA scope config, or reuse an existing one.

        Returns:
            Scope config ID.

        Raises:
            DevLakeAPIError: If create failed and no existing config could be found.
        """
        config = ScopeConfig(
            name=settings.SCOPE_CONFIG_NAME,
            connection_id=connection_id,
            deployment_pattern=options.deployment_pattern,
            production_pattern=options.production_pattern,
            issue_type_incident=options.incident_label,
            refdiff=RefdiffConfig(
                tags_pattern=settings.REFDIFF_TAGS_PATTERN,
                tags_limit=settings.REFDIFF_TAGS_LIMIT,
                tags_order=settings.REFDIFF_TAGS_ORDER,
            ),
        )
        try:
            created = self.client.create_scope_config(plugin, connection_id, config)
            return created.id or 0
        except DevLakeAPIError as create_error:
            logger.debug(f"Scope config create failed, looking for an existing one: {create_error}")
            try:
                existing = self.client.list_scope_configs(plugin, connection_id)
            except DevLakeAPIError as list_error:
                raise DevLakeAPIError(
                    f"create failed: {create_error}; list failed: {list_error}"
                ) from list_error
            for candidate in existing:
                if candidate.name == config.name and candidate.id:
                    return candidate.id
            if existing and existing[0].id:
                return existing[0].id
            raise

    def configure(
        self,
        descriptor: PluginDescriptor,
        request: ScopeRequest,
        options: ScopeOptions,
        handler: ScopeHandler | None = None,
    ) -> ScopeResult:
        """Resolve the selection, ensure the scope config and upsert scopes.

        A scope config failure is reported and the scopes are attached without
        one. Every other failure propagates to the caller.

        Raises:
            ValidationError: If the plugin has no scope support.
            NoRepositoriesResolvedError: If no repository was selected.
            NoRepositoryDetailsResolvedError: If no repository could be looked up.
            DevLakeAPIError: If the batch upsert fails.
        """
        handler = handler or descriptor.create_handler()
        if handler is None:
            raise ValidationError(
                f"Scope configuration for '{descriptor.plugin}' is not yet supported",
                field="plugin",
                value=descriptor.plugin,
            )

        selection = handler.resolve_scope_selection(request)

        scope_config_id = 0
        if handler.uses_scope_config:
            console.print("\n⚙️  Creating DORA scope config...")
            try:
                scope_config_id = self.ensure_scope_config(
                    descriptor.plugin, request.connection_id, options
                )
                console.print(f"   Scope config ID: {scope_config_id}")
            except DevLakeAPIError as e:
                logger.warning(f"Continuing without a scope config: {e}")
                console.print(f"   [yellow]⚠️[/yellow]  Could not create scope config: {e}")

        entries = handler.build_scope_payload(request.connection_id, selection, scope_config_id)
        console.print(f"\n📝 Adding {descriptor.display_name} scopes...")
        self.client.put_scopes(descriptor.plugin, request.connection_id, entries)
        console.print(f"   [green]✅[/green] Added {handler.summary_label(selection)}")

        return ScopeResult(
            connection=BlueprintConnection(
                plugin_name=descriptor.plugin,
                connection_id=request.connection_id,
                scopes=[entry.blueprint_scope() for entry in entries],
            ),
            repos=[detail.full_name for detail in selection.repo_details],
        )

    def from_existing_scopes(self, plugin: str, connection_id: int) -> ScopeResult:
        """Build a blueprint entry from the scopes already on a connection.

        Raises:
            DevLakeAPIError: If the listing fails.
            NoScopedConnectionsError: If the connection has no scopes.
        """
        entries = self.client.list_scopes(plugin, connection_id)
        if not entries:
            raise NoScopedConnectionsError(
                f"No scopes found on connection {connection_id}; "
                "run 'devlake-setup configure scopes' first"
            )

        descriptor = find_plugin(plugin)
        handler = descriptor.create_handler() if descriptor else None

        scopes = []
        repos: list[str] = []
        for entry in entries:
            scope = (
                handler.blueprint_scope_from_listing(entry)
                if handler
                else default_blueprint_scope(entry)
            )
            scopes.append(scope)
            console.print(f"   {scope.scope_name} (ID: {scope.scope_id})")
            if handler and (repo := handler.repo_name_from_listing(entry)):
                repos.append(repo)
        console.print(f"   [green]✅[/green] Found {len(scopes)} scope(s)")

        return ScopeResult(
            connection=BlueprintConnection(
                plugin_name=plugin, connection_id=connection_id, scopes=scopes
            ),
            repos=repos,
        )
