"""
Connection resolution
Finds connections by name and creates the missing ones (test first, then create)
"""

import logging
from collections.abc import Callable

from pydantic import BaseModel
from rich.console import Console

from ..client import DevLakeClient
from ..exceptions import (
    ConnectionCreateFailedError,
    ConnectionTestFailedError,
    DevLakeAPIError,
    ValidationError,
)
from ..input_helpers import prompt_text, select_one
from ..models import DeploymentState, StateConnection
from ..registry import PluginDescriptor, available_plugins, find_plugin

logger = logging.getLogger(__name__)
console = Console()


class ConnectionParams(BaseModel):
    """User-supplied values for one connection instance."""

    token: str
    organization: str = ""
    enterprise: str = ""
    name: str = ""  # Overrides the default "{DisplayName} - {org}" name
    proxy: str = ""
    endpoint: str = ""  # e.g. a GitHub Enterprise Server API URL


class ConnectionResult(BaseModel):
    plugin: str
    connection_id: int
    name: str
    organization: str = ""
    enterprise: str = ""

    def to_state(self) -> StateConnection:
        return StateConnection(
            plugin=self.plugin,
            connection_id=self.connection_id,
            name=self.name,
            organization=self.organization,
            enterprise=self.enterprise,
        )


class ConnectionChoice(BaseModel):
    """A connection known from state or the API, offered in pickers."""

    plugin: str
    connection_id: int
    name: str = ""
    organization: str = ""
    enterprise: str = ""

    @property
    def label(self) -> str:
        return f'{plugin_display_name(self.plugin)} (ID: {self.connection_id}, Name: "{self.name}")'


def plugin_display_name(plugin: str) -> str:
    """Friendly name for a plugin slug, falling back to the slug itself."""
    descriptor = find_plugin(plugin)
    return descriptor.display_name if descriptor else plugin


def require_plugin(slug: str) -> PluginDescriptor:
    """Return the descriptor for an available plugin.

    Raises:
        ValidationError: If the slug is unknown or not yet available.
    """
    descriptor = find_plugin(slug)
    if descriptor is None or not descriptor.available:
        slugs = ", ".join(d.plugin for d in available_plugins())
        raise ValidationError(f"Unknown plugin '{slug}' (choose: {slugs})", field="plugin", value=slug)
    return descriptor


class ConnectionResolver:
    """Ensures a named connection exists for a plugin."""

    def __init__(
        self,
        client: DevLakeClient,
        prompt_name: Callable[[str, str], str] = prompt_text,
    ):
        self.client = client
        self.prompt_name = prompt_name

    def _find_existing(self, plugin: str, name: str):
        try:
            return self.client.find_connection_by_name(plugin, name)
        except DevLakeAPIError as e:
            logger.warning(f"Could not list {plugin} connections: {e}")
            return None

    def ensure(
        self,
        descriptor: PluginDescriptor,
        params: ConnectionParams,
        organization: str = "",
        interactive: bool = False,
    ) -> ConnectionResult:
        """Find the connection by name, or test and create it.

        Args:
            descriptor: Plugin being configured.
            params: Token, org/enterprise and overrides.
            organization: Organization used for the default name.
            interactive: Offer to rename the connection before lookup.

        Returns:
            ConnectionResult for the existing or new connection.

        Raises:
            ConnectionTestFailedError: If the pre-flight test is rejected.
            ConnectionCreateFailedError: If the create call fails.
        """
        name = params.name or descriptor.default_connection_name(organization)
        if interactive:
            name = self.prompt_name("Connection name", name) or name

        existing = self._find_existing(descriptor.plugin, name)
        if existing is not None:
            console.print(f"   Connection already exists (ID={existing.id}), skipping.")
            return ConnectionResult(
                plugin=descriptor.plugin,
                connection_id=existing.id,
                name=existing.name,
                organization=organization,
                enterprise=params.enterprise,
            )

        if descriptor.supports_test:
            console.print("   🔑 Testing connection...")
            test_request = descriptor.build_test_request(
                token=params.token,
                endpoint=params.endpoint,
                proxy=params.proxy,
                organization=params.organization,
                enterprise=params.enterprise,
            )
            try:
                result = self.client.test_connection(descriptor.plugin, test_request)
            except DevLakeAPIError as e:
                raise ConnectionTestFailedError(
                    f"{descriptor.display_name} connection test failed: {e}"
                    f"{descriptor.scope_hint_suffix()}",
                    plugin=descriptor.plugin,
                ) from e
            if not result.success:
                raise ConnectionTestFailedError(
                    f"{descriptor.display_name} connection test failed: {result.message}"
                    f"{descriptor.scope_hint_suffix()}",
                    plugin=descriptor.plugin,
                )
            console.print("   [green]✅[/green] Connection test passed")

        create_request = descriptor.build_create_request(
            name=name,
            token=params.token,
            endpoint=params.endpoint,
            proxy=params.proxy,
            organization=params.organization,
            enterprise=params.enterprise,
        )
        try:
            connection = self.client.create_connection(descriptor.plugin, create_request)
        except DevLakeAPIError as e:
            raise ConnectionCreateFailedError(
                f"Failed to create {descriptor.display_name} connection: {e}",
                plugin=descriptor.plugin,
            ) from e
        console.print(
            f"   [green]✅[/green] Created {descriptor.display_name} connection (ID={connection.id})"
        )

        return ConnectionResult(
            plugin=descriptor.plugin,
            connection_id=connection.id,
            name=connection.name or name,
            organization=organization,
            enterprise=params.enterprise,
        )


def resolve_connection_id(
    client: DevLakeClient,
    state: DeploymentState | None,
    plugin: str,
    flag_value: int | None = None,
    choose: Callable[[str, list[str]], str | None] = select_one,
) -> int:
    """Find the connection to scope: flag, then state, then the API.

    Raises:
        ValidationError: If no connection exists or none was picked.
        DevLakeAPIError: If the API listing fails.
    """
    if flag_value:
        return flag_value
    if state is not None:
        recorded = state.connections_for(plugin)
        if recorded:
            return recorded[0].connection_id

    connections = client.list_connections(plugin)
    if len(connections) == 1:
        return connections[0].id
    if connections:
        labels = [f'ID={c.id}  Name="{c.name}"' for c in connections]
        chosen = choose(f"Multiple {plugin} connections found, pick one", labels)
        if chosen is None:
            raise ValidationError("A connection must be selected", field="connection_id")
        return connections[labels.index(chosen)].id

    raise ValidationError(
        f"No {plugin} connections found; run 'devlake-setup configure connections' first",
        field="connection_id",
    )


def discover_connections(
    client: DevLakeClient, state: DeploymentState | None
) -> list[ConnectionChoice]:
    """Connections from state plus the API, de-duplicated by (plugin, id)."""
    seen: set[tuple[str, int]] = set()
    choices: list[ConnectionChoice] = []

    if state is not None:
        for connection in state.connections:
            seen.add((connection.plugin, connection.connection_id))
            choices.append(
                ConnectionChoice(
                    plugin=connection.plugin,
                    connection_id=connection.connection_id,
                    name=connection.name,
                    organization=connection.organization or "",
                    enterprise=connection.enterprise or "",
                )
            )

    for descriptor in available_plugins():
        try:
            listed = client.list_connections(descriptor.plugin)
        except DevLakeAPIError as e:
            logger.debug(f"Skipping {descriptor.plugin} connection listing: {e}")
            continue
        for connection in listed:
            key = (descriptor.plugin, connection.id)
            if key in seen:
                continue
            seen.add(key)
            choices.append(
                ConnectionChoice(
                    plugin=descriptor.plugin,
                    connection_id=connection.id,
                    name=connection.name,
                    organization=connection.organization,
                    enterprise=connection.enterprise,
                )
            )
    return choices
