"""
DevLake Configuration Pipeline
Runs the fixed phase order: connections, scopes, project, first sync.
"""

import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field
from rich.console import Console

from .. import settings
from ..client import DevLakeClient
from ..config_manager import ConfigManager
from ..discovery import DiscoveryResult, discover
from ..exceptions import (
    ConnectionCreateFailedError,
    ConnectionTestFailedError,
    DevLakeAPIError,
    DevLakeSetupError,
    KeyringUnavailableError,
    NoScopedConnectionsError,
    NoTokenAvailableError,
    PhaseError,
    PipelineFailedError,
    ValidationError,
)
from ..gh import GitHubClient
from ..input_helpers import is_interactive, prompt_enterprise, prompt_organization
from ..models import DeploymentState, StateConnection, StateProject
from ..options import ConnectionOptions, FullOptions, ProjectOptions, ScopeOptions
from ..registry import PluginDescriptor, aggregate_scope_hints, find_plugin
from ..scope_handlers import RepositoryScopeHandler, ScopeHandler, ScopeRequest
from ..state import StateStore, merge_connections
from ..tokens import TokenResult, cleanup_env_file, mask_token, resolve_token
from .connections import (
    ConnectionParams,
    ConnectionResolver,
    ConnectionResult,
    plugin_display_name,
)
from .poller import PipelinePoller, PollResult
from .project import ProjectFinalizer, normalize_time_after
from .scopes import ScopeConfigurator, ScopeResult

logger = logging.getLogger(__name__)
console = Console()


class FinalizeResult(BaseModel):
    project_name: str
    blueprint_id: int
    cron: str
    time_after: str
    repos: list[str] = Field(default_factory=list)
    plugin_names: list[str] = Field(default_factory=list)
    poll: PollResult | None = None


def connect(
    explicit_url: str | None = None,
    directory: Path | str | None = None,
    request_timeout: float = settings.REQUEST_TIMEOUT,
    **kwargs,
) -> "ConfigurationPipeline":
    """Discover the backend, load (or start) the state file and build a pipeline.

    Raises:
        DiscoveryError: If no reachable backend was found.
    """
    console.print("\n🔍 Discovering DevLake instance...")
    found = discover(explicit_url, directory)
    console.print(f"   Found DevLake at {found.url} (via {found.source})")

    store = StateStore(directory)
    state_path, state = store.find_or_create(found.url, found.grafana_url)
    client = DevLakeClient(found.url, timeout=request_timeout)
    return ConfigurationPipeline(
        client, store, state_path, state, discovery=found, **kwargs
    )


class ConfigurationPipeline:
    """Orchestrates connection, scope and project setup against one backend."""

    def __init__(
        self,
        client: DevLakeClient,
        state_store: StateStore,
        state_path: Path,
        state: DeploymentState,
        config_manager: ConfigManager | None = None,
        github_factory: Callable[[str | None], GitHubClient] = GitHubClient,
        poller: PipelinePoller | None = None,
        tty: bool | None = None,
        discovery: DiscoveryResult | None = None,
    ):
        self.client = client
        self.state_store = state_store
        self.state_path = Path(state_path)
        self.state = state
        self.config_manager = config_manager or ConfigManager()
        self.github_factory = github_factory
        self.poller = poller or PipelinePoller(client)
        self.tty = is_interactive() if tty is None else tty
        self.discovery = discovery
        self.current_step = "initialization"

        self.connection_resolver = ConnectionResolver(client)
        self.scope_configurator = ScopeConfigurator(client)
        self.project_finalizer = ProjectFinalizer(client)

        # Tokens resolved during this run, reused by later phases
        self._tokens: dict[str, str] = {}

    def close(self) -> None:
        self.client.close()

    # State persistence
    def _save_state(self, action: Callable[[], None]) -> None:
        try:
            action()
        except OSError as e:
            logger.warning(f"Could not update state file {self.state_path}: {e}")
            console.print(f"[yellow]⚠️  Could not update state file: {e}[/yellow]")
            return
        console.print(f"\n💾 State saved to {self.state_path}")

    def save_connections(self, connections: list[StateConnection]) -> None:
        """Record the connection list and stamp connectionsConfiguredAt."""
        self._save_state(
            lambda: self.state_store.update_connections(self.state_path, self.state, connections)
        )

    # Tokens
    def resolve_token(
        self,
        descriptor: PluginDescriptor,
        explicit: str | None,
        env_file: str | None,
        scope_hint: str | None = None,
    ) -> TokenResult:
        """Resolve a token for one plugin, consulting the keyring before prompting."""
        console.print(f"\n🔑 Resolving {descriptor.display_name} token...")
        result = resolve_token(
            explicit,
            env_file,
            list(descriptor.env_file_keys),
            list(descriptor.env_var_names),
            descriptor.display_name,
            scope_hint=scope_hint if scope_hint is not None else descriptor.scope_hint,
            stored_token=lambda: self.config_manager.get_token(descriptor.plugin),
            interactive=self.tty,
        )
        console.print(f"   Token loaded from: {result.source} ({mask_token(result.token)})")
        self._tokens[descriptor.plugin] = result.token
        return result

    def _remember_token(self, plugin: str, token: str) -> None:
        try:
            self.config_manager.set_token(plugin, token)
        except KeyringUnavailableError as e:
            logger.warning(str(e))
            console.print(f"   [yellow]⚠️  Token not remembered: {e}[/yellow]")
            return
        console.print("   Token stored in the system keyring")

    # Organization / enterprise
    def resolve_organization(self, flag_value: str = "", required: bool = True) -> str:
        """Flag, then the first organization recorded in state, then a prompt."""
        if flag_value.strip():
            return flag_value.strip()
        if recorded := self.state.first_organization():
            return recorded
        if not self.tty:
            return ""
        return (prompt_organization(required=required) or "").strip()

    def resolve_enterprise(self, flag_value: str = "", prompt: bool = False) -> str:
        if flag_value.strip():
            return flag_value.strip()
        if recorded := self.state.first_enterprise():
            return recorded
        if prompt and self.tty:
            return (prompt_enterprise() or "").strip()
        return ""

    # Phase 1: connections
    def setup_connections(
        self, descriptors: list[PluginDescriptor], options: ConnectionOptions
    ) -> list[ConnectionResult]:
        """Create or reuse one connection per plugin and record them in state.

        With several plugins, a failing plugin is reported and skipped. With a
        single plugin, its error propagates.

        Raises:
            ConnectionCreateFailedError: If no connection could be configured.
        """
        self.current_step = "connections"
        single = len(descriptors) == 1
        shared_hint = aggregate_scope_hints(descriptors) if len(descriptors) > 1 else None
        results: list[ConnectionResult] = []
        cleanup_path: str | None = None

        for descriptor in descriptors:
            console.print(f"\n📡 Setting up {descriptor.display_name} connection...")
            try:
                token = self.resolve_token(
                    descriptor, options.token, options.env_file, scope_hint=shared_hint
                )
                if token.env_file_path:
                    cleanup_path = token.env_file_path

                organization = self.resolve_organization(
                    options.organization, required=descriptor.needs_org
                )
                if descriptor.needs_org and not organization:
                    raise ValidationError(
                        f"Organization is required for {descriptor.display_name} (use --org)",
                        field="organization",
                    )
                enterprise = (
                    self.resolve_enterprise(options.enterprise, prompt=True)
                    if descriptor.needs_enterprise
                    else options.enterprise.strip()
                )

                params = ConnectionParams(
                    token=token.token,
                    organization=organization,
                    enterprise=enterprise,
                    name=options.name,
                    proxy=options.proxy,
                    endpoint=options.endpoint,
                )
                result = self.connection_resolver.ensure(
                    descriptor, params, organization, interactive=options.interactive
                )
            except (
                NoTokenAvailableError,
                ValidationError,
                ConnectionTestFailedError,
                ConnectionCreateFailedError,
            ) as e:
                if single:
                    raise
                logger.warning(f"Skipping {descriptor.plugin}: {e}")
                console.print(
                    f"   [yellow]⚠️  Could not set up {descriptor.display_name}: {e}[/yellow]"
                )
                continue

            results.append(result)
            if options.remember_token and token.source != "keyring":
                self._remember_token(descriptor.plugin, token.token)

        if results:
            self.save_connections(
                merge_connections(self.state.connections, [r.to_state() for r in results])
            )

        if cleanup_path and not options.skip_cleanup:
            console.print(f"\n🧹 Cleaning up {cleanup_path}...")
            try:
                if cleanup_env_file(cleanup_path):
                    console.print("   [green]✅[/green] Env file deleted")
            except OSError as e:
                logger.warning(f"Could not delete env file {cleanup_path}: {e}")
                console.print(f"   [yellow]⚠️  Could not delete env file: {e}[/yellow]")

        if not results:
            raise ConnectionCreateFailedError("No connections were created; cannot continue")
        return results

    # Phase 2: scopes
    def _scope_token(self, descriptor: PluginDescriptor, options: ScopeOptions) -> str | None:
        if descriptor.plugin in self._tokens:
            return self._tokens[descriptor.plugin]
        if descriptor.scope_handler is not RepositoryScopeHandler:
            return None
        try:
            return self.resolve_token(descriptor, options.token, options.env_file).token
        except NoTokenAvailableError as e:
            logger.info(f"Looking up repositories without a token: {e}")
            return None

    def _scope_handler(self, descriptor: PluginDescriptor) -> ScopeHandler | None:
        if descriptor.scope_handler is RepositoryScopeHandler:
            return RepositoryScopeHandler(github_factory=self.github_factory)
        return descriptor.create_handler()

    def scope_connection(
        self,
        descriptor: PluginDescriptor,
        connection_id: int,
        options: ScopeOptions,
        organization: str = "",
        enterprise: str = "",
    ) -> ScopeResult:
        """Attach scopes to one connection."""
        request = ScopeRequest(
            connection_id=connection_id,
            organization=organization,
            enterprise=enterprise,
            repos=options.repos,
            repos_file=options.repos_file,
            token=self._scope_token(descriptor, options),
            interactive=options.interactive,
        )
        return self.scope_configurator.configure(
            descriptor, request, options, handler=self._scope_handler(descriptor)
        )

    def setup_scopes(
        self,
        connections: list[ConnectionResult],
        options: ScopeOptions,
        organization: str = "",
        enterprise: str = "",
    ) -> list[ScopeResult]:
        """Scope every connection, skipping the ones that fail.

        Raises:
            NoScopedConnectionsError: If no connection was scoped.
        """
        self.current_step = "scopes"
        scoped: list[ScopeResult] = []
        for connection in connections:
            descriptor = find_plugin(connection.plugin)
            console.print(
                f"\n📡 Configuring scopes for {plugin_display_name(connection.plugin)} "
                f"(connection {connection.connection_id})..."
            )
            if descriptor is None:
                console.print(
                    f"   [yellow]⚠️  Scope configuration for '{connection.plugin}' is not supported[/yellow]"
                )
                continue
            try:
                scoped.append(
                    self.scope_connection(
                        descriptor,
                        connection.connection_id,
                        options,
                        organization=organization or connection.organization,
                        enterprise=enterprise or connection.enterprise,
                    )
                )
            except DevLakeSetupError as e:
                logger.warning(f"Scope setup failed for {connection.plugin}: {e}")
                console.print(
                    f"   [yellow]⚠️  {descriptor.display_name} scope setup: {e}[/yellow]"
                )

        if not scoped:
            raise NoScopedConnectionsError(
                "No scoped connections available; cannot create project"
            )
        return scoped

    # Phase 3: project, blueprint and first sync
    def finalize(
        self,
        scoped: list[ScopeResult],
        options: ProjectOptions,
        project_name: str,
        organization: str = "",
    ) -> FinalizeResult:
        """Ensure the project, replace its blueprint, trigger the sync, save state.

        State is written after the blueprint patch succeeds, and before a
        failed pipeline is reported.

        Raises:
            NoScopedConnectionsError: If ``scoped`` is empty.
            ProjectUnavailableError: If the project is unavailable.
            BlueprintConfigureFailedError: If the blueprint patch fails.
            PipelineFailedError: If the first sync fails.
        """
        self.current_step = "project"
        if not scoped:
            raise NoScopedConnectionsError("At least one scoped connection is required")

        time_after = normalize_time_after(options.time_after)
        cron = options.cron or settings.DEFAULT_CRON
        connections = [s.connection for s in scoped]
        repos = [repo for s in scoped for repo in s.repos]
        plugin_names = [plugin_display_name(c.plugin_name) for c in connections]

        console.print("\n🏗️  Creating DevLake project...")
        blueprint_id = self.project_finalizer.ensure_project(project_name, plugin_names)
        console.print(f"   Project: {project_name}, Blueprint ID: {blueprint_id}")

        console.print("\n📋 Configuring blueprint...")
        self.project_finalizer.patch_blueprint(blueprint_id, connections, cron, time_after)
        console.print(f"   [green]✅[/green] Blueprint configured with {len(connections)} connection(s)")
        console.print(f"   Schedule: {cron} | Data since: {time_after}")

        result = FinalizeResult(
            project_name=project_name,
            blueprint_id=blueprint_id,
            cron=cron,
            time_after=time_after,
            repos=repos,
            plugin_names=plugin_names,
        )
        project = StateProject(
            name=project_name,
            blueprint_id=blueprint_id,
            repos=repos,
            organization=organization,
        )

        pipeline_error: PipelineFailedError | None = None
        if not options.skip_sync:
            self.current_step = "sync"
            console.print("\n🚀 Triggering first data sync...")
            console.print("   Depending on data volume and history, this may take 5-30 minutes.")
            try:
                result.poll = self.poller.trigger_and_poll(
                    blueprint_id, wait=options.wait, timeout=options.timeout
                )
            except PipelineFailedError as e:
                pipeline_error = e
            except DevLakeAPIError as e:
                logger.warning(f"Could not trigger sync: {e}")
                console.print(f"   [yellow]⚠️  Could not trigger sync: {e}[/yellow]")

        self._save_state(
            lambda: self.state_store.update_project(self.state_path, self.state, project)
        )
        if pipeline_error is not None:
            raise pipeline_error
        return result

    # Full workflow
    def run_full(
        self, descriptors: list[PluginDescriptor], options: FullOptions
    ) -> FinalizeResult:
        """Run connections, scopes and project setup in order.

        Raises:
            PhaseError: If a phase fails fatally.
            PipelineFailedError: If the first sync fails (state is already saved).
        """
        phase_titles = {
            "connections": "PHASE 1: Configure Connections",
            "scopes": "PHASE 2: Configure Scopes",
            "project": "PHASE 3: Project Setup",
        }

        try:
            _print_phase(phase_titles["connections"])
            results = self.setup_connections(descriptors, options.connections)
            console.print("\n   [green]✅[/green] Phase 1 complete.")

            organization = options.connections.organization or next(
                (r.organization for r in results if r.organization), ""
            )
            enterprise = options.connections.enterprise or next(
                (r.enterprise for r in results if r.enterprise), ""
            )

            _print_phase(phase_titles["scopes"])
            scoped = self.setup_scopes(results, options.scopes, organization, enterprise)
            console.print("\n   [green]✅[/green] Phase 2 complete.")

            _print_phase(phase_titles["project"])
            project_name = (
                options.project.project_name
                or organization
                or self.state.first_organization()
                or settings.DEFAULT_PROJECT_NAME
            )
            return self.finalize(scoped, options.project, project_name, organization)
        except PipelineFailedError:
            raise
        except PhaseError:
            raise
        except DevLakeSetupError as e:
            phase = self.current_step
            raise PhaseError(
                f"Phase '{phase}' failed: {e}",
                phase=phase,
                details={"error": type(e).__name__},
            ) from e


def _print_phase(title: str) -> None:
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
