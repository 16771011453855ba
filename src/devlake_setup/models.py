"""Typed models for the DevLake REST API and the local deployment state.

API payloads use camelCase on the wire and snake_case in Python; every model
derives from ``CamelModel`` so ``to_api()`` produces the JSON the backend
expects. Scope entries are a tagged union (``RepoScope`` | ``OrgScope``) with
one serializer per variant, so a batch upsert never carries untyped dicts.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model mapping snake_case fields to camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    def to_api(self) -> dict[str, Any]:
        """Serialize for the wire, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# Connections


class Connection(CamelModel):
    """A plugin connection as returned by the API."""

    id: int
    name: str
    endpoint: str = ""
    proxy: str = ""
    token: str = ""
    organization: str = ""
    enterprise: str = ""

    @field_validator("endpoint", "proxy", "token", "organization", "enterprise", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ConnectionTestRequest(CamelModel):
    """Payload for POST /plugins/{plugin}/test."""

    endpoint: str
    auth_method: str = "AccessToken"
    token: str
    enable_graphql: bool | None = None
    rate_limit_per_hour: int
    proxy: str = ""
    organization: str | None = None
    enterprise: str | None = None


class ConnectionCreateRequest(CamelModel):
    """Payload for POST /plugins/{plugin}/connections."""

    name: str
    endpoint: str
    proxy: str | None = None
    auth_method: str = "AccessToken"
    token: str
    enable_graphql: bool | None = None
    rate_limit_per_hour: int
    organization: str | None = None
    enterprise: str | None = None


class ConnectionUpdateRequest(CamelModel):
    """Payload for PATCH /plugins/{plugin}/connections/{id}; only set fields are sent."""

    name: str | None = None
    endpoint: str | None = None
    proxy: str | None = None
    auth_method: str | None = None
    token: str | None = None
    organization: str | None = None
    enterprise: str | None = None

    def is_empty(self) -> bool:
        return not self.to_api()


class ConnectionTestResult(CamelModel):
    success: bool = False
    message: str = ""


# Scope configs and scopes


class RefdiffConfig(CamelModel):
    tags_pattern: str = ""
    tags_limit: int = 0
    tags_order: str = ""


class ScopeConfig(CamelModel):
    """Named DORA policy bundle attached to a connection."""

    id: int | None = None
    name: str
    connection_id: int | None = None
    deployment_pattern: str | None = None
    production_pattern: str | None = None
    issue_type_incident: str | None = None
    refdiff: RefdiffConfig | None = None


class BlueprintScope(CamelModel):
    scope_id: str
    scope_name: str


class BlueprintConnection(CamelModel):
    """One connection and its scopes, as attached to a blueprint."""

    plugin_name: str
    connection_id: int
    scopes: list[BlueprintScope] = Field(default_factory=list)


class RepoDetails(BaseModel):
    """Canonical repository metadata from the GitHub REST API."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    full_name: str
    html_url: str = ""
    clone_url: str = ""


class RepoScope(BaseModel):
    """A GitHub repository scope entry."""

    github_id: int
    connection_id: int
    name: str
    full_name: str
    html_url: str = ""
    clone_url: str = ""
    scope_config_id: int = 0

    @classmethod
    def from_details(
        cls, details: RepoDetails, connection_id: int, scope_config_id: int = 0
    ) -> "RepoScope":
        return cls(
            github_id=details.id,
            connection_id=connection_id,
            name=details.name,
            full_name=details.full_name,
            html_url=details.html_url,
            clone_url=details.clone_url,
            scope_config_id=scope_config_id,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "githubId": self.github_id,
            "connectionId": self.connection_id,
            "name": self.name,
            "fullName": self.full_name,
            "htmlUrl": self.html_url,
            "cloneUrl": self.clone_url,
        }
        if self.scope_config_id > 0:
            payload["scopeConfigId"] = self.scope_config_id
        return payload

    def blueprint_scope(self) -> BlueprintScope:
        return BlueprintScope(scope_id=str(self.github_id), scope_name=self.full_name)


def derive_scope_id(organization: str, enterprise: str) -> str:
    """Compute an organization-level scope id.

    Examples:
        >>> derive_scope_id("my-org", "my-ent")
        'my-ent/my-org'
        >>> derive_scope_id("  ", "my-ent")
        'my-ent'
    """
    organization = (organization or "").strip()
    enterprise = (enterprise or "").strip()
    if enterprise:
        if organization:
            return f"{enterprise}/{organization}"
        return enterprise
    return organization


class OrgScope(BaseModel):
    """An organization/enterprise scope entry (Copilot usage metrics)."""

    id: str
    connection_id: int
    organization: str = ""
    enterprise: str = ""

    @classmethod
    def for_org(cls, connection_id: int, organization: str, enterprise: str) -> "OrgScope":
        return cls(
            id=derive_scope_id(organization, enterprise),
            connection_id=connection_id,
            organization=(organization or "").strip(),
            enterprise=(enterprise or "").strip(),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "connectionId": self.connection_id,
            "organization": self.organization,
            "name": self.id,
            "fullName": self.id,
        }
        if self.enterprise:
            payload["enterprise"] = self.enterprise
        return payload

    def blueprint_scope(self) -> BlueprintScope:
        return BlueprintScope(scope_id=self.id, scope_name=self.id)


# One entry of a PUT /scopes batch
ScopeEntry = RepoScope | OrgScope


# Projects, blueprints, pipelines


class ProjectMetric(CamelModel):
    plugin_name: str
    enable: bool = True


class Blueprint(CamelModel):
    id: int
    name: str | None = None
    enable: bool | None = None
    cron_config: str | None = None
    time_after: str | None = None
    connections: list[BlueprintConnection] = Field(default_factory=list)

    @field_validator("connections", mode="before")
    @classmethod
    def _null_as_list(cls, value: Any) -> Any:
        return value or []


class Project(CamelModel):
    name: str
    description: str | None = None
    metrics: list[ProjectMetric] = Field(default_factory=list)
    blueprint: Blueprint | None = None

    @field_validator("metrics", mode="before")
    @classmethod
    def _null_as_list(cls, value: Any) -> Any:
        return value or []


class BlueprintPatch(CamelModel):
    """Full replacement of a blueprint's schedule and connection list."""

    enable: bool = True
    cron_config: str
    time_after: str
    connections: list[BlueprintConnection]


class Pipeline(CamelModel):
    id: int
    status: str = ""
    finished_tasks: int = 0
    total_tasks: int = 0


# Local deployment state


class StateEndpoints(CamelModel):
    backend: str = ""
    grafana: str | None = None
    config_ui: str | None = None


class StateConnection(CamelModel):
    plugin: str
    connection_id: int
    name: str
    organization: str | None = None
    enterprise: str | None = None

    @field_validator("organization", "enterprise", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        return value or None


class StateProject(CamelModel):
    name: str
    blueprint_id: int
    repos: list[str] = Field(default_factory=list)
    organization: str | None = None

    @field_validator("organization", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        return value or None


class DeploymentState(CamelModel):
    """What has been configured so far, persisted next to the deployment."""

    deployed_at: str = ""
    method: str = ""
    endpoints: StateEndpoints = Field(default_factory=StateEndpoints)
    connections: list[StateConnection] = Field(default_factory=list)
    connections_configured_at: str | None = None
    project: StateProject | None = None
    scopes_configured_at: str | None = None

    def connections_for(self, plugin: str) -> list[StateConnection]:
        return [c for c in self.connections if c.plugin == plugin]

    def first_organization(self) -> str:
        """First non-empty organization across all recorded connections."""
        for connection in self.connections:
            if connection.organization:
                return connection.organization
        return ""

    def first_enterprise(self) -> str:
        for connection in self.connections:
            if connection.enterprise:
                return connection.enterprise
        return ""
