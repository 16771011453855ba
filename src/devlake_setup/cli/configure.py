"""Configure commands: connections, scopes, project and the full workflow."""

import logging

import typer

from .. import settings
from ..exceptions import (
    DevLakeAPIError,
    DevLakeSetupError,
    NoScopedConnectionsError,
    ValidationError,
)
from ..input_helpers import is_interactive, prompt_text, select_many
from ..options import ConnectionOptions, FullOptions, ProjectOptions, ScopeOptions
from ..pipeline.connections import discover_connections, resolve_connection_id
from ..pipeline.project import normalize_time_after
from ..pipeline.scopes import ScopeResult
from ..repofile import split_repo_list
from .common import choose_plugins, console, fail, open_pipeline, pipeline_timeout, print_banner
from .display import display_connections_summary, display_project_summary

logger = logging.getLogger(__name__)

configure_app = typer.Typer(
    help="Configure connections, scopes and projects",
    no_args_is_help=True,
)


def prompts_enabled(plugin: str | None) -> bool:
    """Interactive prompts run only without --plugin and on a terminal."""
    return plugin is None and is_interactive()


@configure_app.command("full")
def configure_full(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Plugin slug (github, gh-copilot)"),
    org: str = typer.Option("", "--org", help="Organization slug"),
    enterprise: str = typer.Option("", "--enterprise", help="Enterprise slug"),
    token: str | None = typer.Option(None, "--token", help="Personal access token"),
    env_file: str = typer.Option(settings.DEFAULT_ENV_FILE, "--env-file", help="Env file holding tokens"),
    skip_cleanup: bool = typer.Option(False, "--skip-cleanup", help="Keep the env file after use"),
    remember_token: bool = typer.Option(False, "--remember-token", help="Store the token in the OS keyring"),
    repos: str | None = typer.Option(None, "--repos", help="Comma-separated owner/repo list"),
    repos_file: str | None = typer.Option(None, "--repos-file", help="File with one owner/repo per line"),
    project_name: str = typer.Option("", "--project-name", help="DevLake project name"),
    deployment_pattern: str = typer.Option(
        settings.DEFAULT_DEPLOYMENT_PATTERN, "--deployment-pattern", help="Regex matching deployment workflows"
    ),
    production_pattern: str = typer.Option(
        settings.DEFAULT_PRODUCTION_PATTERN, "--production-pattern", help="Regex matching production environments"
    ),
    incident_label: str = typer.Option(
        settings.DEFAULT_INCIDENT_LABEL, "--incident-label", help="Issue label marking incidents"
    ),
    time_after: str = typer.Option("", "--time-after", help="Collect data since (YYYY-MM-DD or ISO-8601)"),
    cron: str = typer.Option(settings.DEFAULT_CRON, "--cron", help="Blueprint sync schedule"),
    skip_sync: bool = typer.Option(False, "--skip-sync", help="Do not trigger the first sync"),
    timeout: int | None = typer.Option(None, "--timeout", help="Seconds to wait for the first sync"),
):
    """Connections, scopes and project in one run."""
    print_banner("DevLake: Full Configuration")

    try:
        normalize_time_after(time_after)
        descriptors = choose_plugins(plugin, "Which plugins should be configured?")
    except DevLakeSetupError as e:
        raise fail(e) from e

    options = FullOptions(
        connections=ConnectionOptions(
            organization=org,
            enterprise=enterprise,
            token=token,
            env_file=env_file,
            skip_cleanup=skip_cleanup,
            remember_token=remember_token,
            interactive=prompts_enabled(plugin),
        ),
        scopes=ScopeOptions(
            repos=split_repo_list(repos),
            repos_file=repos_file,
            token=token,
            env_file=env_file,
            deployment_pattern=deployment_pattern,
            production_pattern=production_pattern,
            incident_label=incident_label,
            interactive=prompts_enabled(plugin),
        ),
        project=ProjectOptions(
            project_name=project_name,
            time_after=time_after,
            cron=cron,
            skip_sync=skip_sync,
            timeout=pipeline_timeout(timeout),
        ),
    )

    try:
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        result = pipeline.run_full(descriptors, options)
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()

    display_project_summary(console, result)


@configure_app.command("connections")
def configure_connections(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Plugin slug (github, gh-copilot)"),
    org: str = typer.Option("", "--org", help="Organization slug"),
    enterprise: str = typer.Option("", "--enterprise", help="Enterprise slug"),
    token: str | None = typer.Option(None, "--token", help="Personal access token"),
    env_file: str = typer.Option(settings.DEFAULT_ENV_FILE, "--env-file", help="Env file holding tokens"),
    skip_cleanup: bool = typer.Option(False, "--skip-cleanup", help="Keep the env file after use"),
    name: str = typer.Option("", "--name", help="Connection name (default: '<Plugin> - <org>')"),
    proxy: str = typer.Option("", "--proxy", help="HTTP proxy for the connection"),
    endpoint: str = typer.Option("", "--endpoint", help="API endpoint override (e.g. GitHub Enterprise Server)"),
    remember_token: bool = typer.Option(False, "--remember-token", help="Store the token in the OS keyring"),
):
    """Create or reuse plugin connections."""
    print_banner("DevLake: Configure Connections")

    try:
        descriptors = choose_plugins(plugin, "Which plugins should be connected?")
    except DevLakeSetupError as e:
        raise fail(e) from e

    options = ConnectionOptions(
        organization=org,
        enterprise=enterprise,
        token=token,
        env_file=env_file,
        skip_cleanup=skip_cleanup,
        remember_token=remember_token,
        name=name,
        proxy=proxy,
        endpoint=endpoint,
        interactive=prompts_enabled(plugin),
    )

    try:
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        results = pipeline.setup_connections(descriptors, options)
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()

    display_connections_summary(console, results)


@configure_app.command("scopes")
def configure_scopes(
    ctx: typer.Context,
    plugin: str | None = typer.Option(None, "--plugin", "-p", help="Plugin slug (github, gh-copilot)"),
    org: str = typer.Option("", "--org", help="Organization slug"),
    enterprise: str = typer.Option("", "--enterprise", help="Enterprise slug"),
    connection_id: int | None = typer.Option(None, "--connection-id", help="Connection to scope"),
    repos: str | None = typer.Option(None, "--repos", help="Comma-separated owner/repo list"),
    repos_file: str | None = typer.Option(None, "--repos-file", help="File with one owner/repo per line"),
    token: str | None = typer.Option(None, "--token", help="Token for repository lookups"),
    env_file: str = typer.Option(settings.DEFAULT_ENV_FILE, "--env-file", help="Env file holding tokens"),
    deployment_pattern: str = typer.Option(
        settings.DEFAULT_DEPLOYMENT_PATTERN, "--deployment-pattern", help="Regex matching deployment workflows"
    ),
    production_pattern: str = typer.Option(
        settings.DEFAULT_PRODUCTION_PATTERN, "--production-pattern", help="Regex matching production environments"
    ),
    incident_label: str = typer.Option(
        settings.DEFAULT_INCIDENT_LABEL, "--incident-label", help="Issue label marking incidents"
    ),
):
    """Attach repositories or organizations to a connection."""
    print_banner("DevLake: Configure Scopes")

    try:
        if not plugin and (org or repos or repos_file or connection_id):
            raise ValidationError(
                "--plugin is required when --org, --repos, --repos-file or --connection-id is given",
                field="plugin",
            )
        descriptor = choose_plugins(plugin, "Which plugin should be scoped?", multiple=False)[0]
    except DevLakeSetupError as e:
        raise fail(e) from e

    options = ScopeOptions(
        repos=split_repo_list(repos),
        repos_file=repos_file,
        token=token,
        env_file=env_file,
        deployment_pattern=deployment_pattern,
        production_pattern=production_pattern,
        incident_label=incident_label,
        interactive=prompts_enabled(plugin),
    )

    try:
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        organization = pipeline.resolve_organization(org, required=descriptor.needs_org)
        resolved_enterprise = pipeline.resolve_enterprise(
            enterprise, prompt=descriptor.needs_enterprise
        )
        if not organization and not resolved_enterprise:
            raise ValidationError(
                "An organization is required (use --org or --enterprise)",
                field="organization",
            )

        scope_connection_id = resolve_connection_id(
            pipeline.client, pipeline.state, descriptor.plugin, connection_id
        )
        console.print(f"\n🔗 Using {descriptor.display_name} connection {scope_connection_id}")
        result = pipeline.scope_connection(
            descriptor,
            scope_connection_id,
            options,
            organization=organization,
            enterprise=resolved_enterprise,
        )
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()

    console.print()
    console.print(f"[green]✓[/green] {result.summary}")
    console.print("[dim]Next: devlake-setup configure project[/dim]")


@configure_app.command("project")
def configure_project(
    ctx: typer.Context,
    project_name: str = typer.Option("", "--project-name", help="DevLake project name"),
    time_after: str = typer.Option("", "--time-after", help="Collect data since (YYYY-MM-DD or ISO-8601)"),
    cron: str = typer.Option(settings.DEFAULT_CRON, "--cron", help="Blueprint sync schedule"),
    skip_sync: bool = typer.Option(False, "--skip-sync", help="Do not trigger the first sync"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for the first sync to finish"),
    timeout: int | None = typer.Option(None, "--timeout", help="Seconds to wait for the first sync"),
):
    """Create the project and blueprint from scopes already on connections."""
    print_banner("DevLake: Project Setup")

    try:
        normalize_time_after(time_after)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        pipeline = open_pipeline(ctx)
    except DevLakeSetupError as e:
        raise fail(e) from e

    try:
        choices = discover_connections(pipeline.client, pipeline.state)
        if not choices:
            raise ValidationError(
                "No connections found; run 'devlake-setup configure connections' first"
            )

        if pipeline.tty:
            labels = [c.label for c in choices]
            picked = select_many("Which connections should the project include?", labels)
            selected = [c for c in choices if c.label in picked]
        else:
            selected = choices
        if not selected:
            raise ValidationError("At least one connection must be selected")

        console.print("\n🔍 Reading existing scopes...")
        scoped: list[ScopeResult] = []
        for choice in selected:
            console.print(f"\n   {choice.label}")
            try:
                scoped.append(
                    pipeline.scope_configurator.from_existing_scopes(
                        choice.plugin, choice.connection_id
                    )
                )
            except (DevLakeAPIError, NoScopedConnectionsError) as e:
                logger.warning(f"Skipping connection {choice.connection_id}: {e}")
                console.print(f"   [yellow]⚠️  {e}[/yellow]")
        if not scoped:
            raise NoScopedConnectionsError(
                "No scoped connections available; run 'devlake-setup configure scopes' first"
            )

        organization = pipeline.state.first_organization()
        name = project_name or organization or settings.DEFAULT_PROJECT_NAME
        if not project_name and pipeline.tty:
            name = prompt_text("Project name", name) or name

        options = ProjectOptions(
            project_name=name,
            time_after=time_after,
            cron=cron,
            skip_sync=skip_sync,
            wait=wait,
            timeout=pipeline_timeout(timeout),
        )
        result = pipeline.finalize(scoped, options, name, organization)
    except DevLakeSetupError as e:
        raise fail(e) from e
    finally:
        pipeline.close()

    display_project_summary(console, result)
