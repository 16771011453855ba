"""Per-phase option models.

Each phase function receives only the model it needs; the CLI builds them
from flags and ``FullOptions`` composes all three for ``configure full``.
"""

from pydantic import BaseModel, Field

from . import settings


class ConnectionOptions(BaseModel):
    """Inputs for creating or reusing connections."""

    organization: str = ""
    enterprise: str = ""
    token: str | None = None
    env_file: str = settings.DEFAULT_ENV_FILE
    skip_cleanup: bool = False
    remember_token: bool = False
    name: str = ""
    proxy: str = ""
    endpoint: str = ""
    interactive: bool = False


class ScopeOptions(BaseModel):
    """Inputs for attaching scopes and the DORA scope config."""

    repos: list[str] = Field(default_factory=list)
    repos_file: str | None = None
    token: str | None = None
    env_file: str = settings.DEFAULT_ENV_FILE
    deployment_pattern: str = settings.DEFAULT_DEPLOYMENT_PATTERN
    production_pattern: str = settings.DEFAULT_PRODUCTION_PATTERN
    incident_label: str = settings.DEFAULT_INCIDENT_LABEL
    interactive: bool = False


class ProjectOptions(BaseModel):
    """Inputs for the project, its blueprint and the first sync."""

    project_name: str = ""
    time_after: str = ""
    cron: str = settings.DEFAULT_CRON
    skip_sync: bool = False
    wait: bool = True
    timeout: int = settings.PIPELINE_TIMEOUT


class FullOptions(BaseModel):
    connections: ConnectionOptions = Field(default_factory=ConnectionOptions)
    scopes: ScopeOptions = Field(default_factory=ScopeOptions)
    project: ProjectOptions = Field(default_factory=ProjectOptions)
