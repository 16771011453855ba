"""Catalog of the DevLake plugins this tool can configure."""

from pydantic import BaseModel, ConfigDict, Field

from .models import ConnectionCreateRequest, ConnectionTestRequest
from .scope_handlers import OrganizationScopeHandler, RepositoryScopeHandler, ScopeHandler

DEFAULT_RATE_LIMIT = 4500


class PluginDescriptor(BaseModel):
    """Static description of one connection kind."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    plugin: str
    display_name: str
    available: bool = True
    endpoint: str = ""
    needs_org: bool = False
    needs_enterprise: bool = False
    supports_test: bool = True
    enable_graphql: bool = False
    rate_limit_per_hour: int = DEFAULT_RATE_LIMIT
    required_scopes: tuple[str, ...] = ()
    scope_hint: str = ""
    env_var_names: tuple[str, ...] = ()
    env_file_keys: tuple[str, ...] = ()
    scope_handler: type[ScopeHandler] | None = Field(default=None, exclude=True)

    def default_connection_name(self, organization: str = "") -> str:
        """Default name used to find or create this plugin's connection.

        Examples:
            >>> find_plugin("github").default_connection_name("my-org")
            'GitHub - my-org'
        """
        organization = organization.strip()
        if organization:
            return f"{self.display_name} - {organization}"
        return self.display_name

    def scope_hint_suffix(self) -> str:
        """Permission reminder appended to connection error messages."""
        if not self.scope_hint:
            return ""
        return f"\n   💡 Ensure your PAT has these scopes: {self.scope_hint}"

    def create_handler(self) -> ScopeHandler | None:
        return self.scope_handler() if self.scope_handler else None

    def build_test_request(
        self,
        token: str,
        endpoint: str = "",
        proxy: str = "",
        organization: str = "",
        enterprise: str = "",
    ) -> ConnectionTestRequest:
        return ConnectionTestRequest(
            endpoint=endpoint or self.endpoint,
            token=token,
            enable_graphql=True if self.enable_graphql else None,
            rate_limit_per_hour=self.rate_limit_per_hour,
            proxy=proxy,
            organization=organization if self.needs_org and organization else None,
            enterprise=enterprise if self.needs_enterprise and enterprise else None,
        )

    def build_create_request(
        self,
        name: str,
        token: str,
        endpoint: str = "",
        proxy: str = "",
        organization: str = "",
        enterprise: str = "",
    ) -> ConnectionCreateRequest:
        return ConnectionCreateRequest(
            name=name,
            endpoint=endpoint or self.endpoint,
            proxy=proxy or None,
            token=token,
            enable_graphql=True if self.enable_graphql else None,
            rate_limit_per_hour=self.rate_limit_per_hour,
            organization=organization if self.needs_org and organization else None,
            enterprise=enterprise if self.needs_enterprise and enterprise else None,
        )


PLUGINS: tuple[PluginDescriptor, ...] = (
    PluginDescriptor(
        plugin="github",
        display_name="GitHub",
        endpoint="https://api.github.com/",
        enable_graphql=True,
        required_scopes=("repo", "read:org", "read:user"),
        scope_hint="repo, read:org, read:user",
        env_var_names=("GITHUB_TOKEN", "GH_TOKEN"),
        env_file_keys=("GITHUB_PAT", "GITHUB_TOKEN", "GH_TOKEN"),
        scope_handler=RepositoryScopeHandler,
    ),
    PluginDescriptor(
        plugin="gh-copilot",
        display_name="GitHub Copilot",
        endpoint="https://api.github.com/",
        needs_org=True,
        needs_enterprise=True,
        rate_limit_per_hour=5000,
        required_scopes=("manage_billing:copilot", "read:org"),
        scope_hint="manage_billing:copilot, read:org (+ read:enterprise for enterprise metrics)",
        env_var_names=("GITHUB_TOKEN", "GH_TOKEN"),
        env_file_keys=("GITHUB_PAT", "GITHUB_TOKEN", "GH_TOKEN"),
        scope_handler=OrganizationScopeHandler,
    ),
    PluginDescriptor(
        plugin="gitlab",
        display_name="GitLab",
        available=False,
        env_var_names=("GITLAB_TOKEN",),
        env_file_keys=("GITLAB_TOKEN",),
    ),
    PluginDescriptor(
        plugin="azure-devops",
        display_name="Azure DevOps",
        available=False,
        env_var_names=("AZURE_DEVOPS_PAT",),
        env_file_keys=("AZURE_DEVOPS_PAT",),
    ),
)


def find_plugin(slug: str) -> PluginDescriptor | None:
    """Look up a descriptor by slug, or None if unknown."""
    for descriptor in PLUGINS:
        if descriptor.plugin == slug:
            return descriptor
    return None


def available_plugins() -> list[PluginDescriptor]:
    """Descriptors that can be selected, in registry order."""
    return [d for d in PLUGINS if d.available]


def available_slugs() -> list[str]:
    return [d.plugin for d in available_plugins()]


def aggregate_scope_hints(descriptors: list[PluginDescriptor]) -> str:
    """Merge required scopes of several plugins sharing one token.

    Examples:
        >>> aggregate_scope_hints([find_plugin("github"), find_plugin("gh-copilot")])
        'repo, read:org, read:user, manage_billing:copilot'
    """
    seen: list[str] = []
    for descriptor in descriptors:
        for scope in descriptor.required_scopes:
            if scope not in seen:
                seen.append(scope)
    return ", ".join(seen)
