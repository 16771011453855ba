"""Per-plugin scope capabilities.

Each plugin kind that can be scoped implements ``ScopeHandler``; the registry
points every descriptor at its handler class, so the configurator never
switches on plugin slugs.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field
from rich.console import Console

from .exceptions import (
    GitHubError,
    NoRepositoriesResolvedError,
    NoRepositoryDetailsResolvedError,
    ValidationError,
)
from .gh import GitHubClient
from .input_helpers import prompt_text, select_many
from .models import BlueprintScope, OrgScope, RepoDetails, RepoScope, ScopeEntry
from .repofile import parse_repo_file, split_repo_list

logger = logging.getLogger(__name__)
console = Console()


class ScopeRequest(BaseModel):
    """Inputs a handler may draw on to pick scopes for one connection."""

    connection_id: int
    organization: str = ""
    enterprise: str = ""
    repos: list[str] = Field(default_factory=list)
    repos_file: str | None = None
    token: str | None = None
    interactive: bool = False


class ScopeSelection(BaseModel):
    """What a handler resolved; fields are used per plugin kind."""

    repos: list[str] = Field(default_factory=list)
    repo_details: list[RepoDetails] = Field(default_factory=list)
    organization: str = ""
    enterprise: str = ""


def default_blueprint_scope(entry: dict[str, Any]) -> BlueprintScope:
    """Blueprint scope from a listed entry keyed by its string id."""
    scope_id = str(entry.get("id") or "")
    scope_name = entry.get("fullName") or entry.get("name") or scope_id
    return BlueprintScope(scope_id=scope_id, scope_name=scope_name)


class ScopeHandler(ABC):
    """Capability interface for one plugin kind."""

    uses_scope_config: bool = False

    @abstractmethod
    def resolve_scope_selection(self, request: ScopeRequest) -> ScopeSelection:
        """Work out which data sources to attach."""

    @abstractmethod
    def build_scope_payload(
        self, connection_id: int, selection: ScopeSelection, scope_config_id: int = 0
    ) -> list[ScopeEntry]:
        """Build the entries for the batch scope upsert."""

    @abstractmethod
    def summary_label(self, selection: ScopeSelection) -> str:
        """One-line description of the selection for progress output."""

    def blueprint_scope_from_listing(self, entry: dict[str, Any]) -> BlueprintScope:
        """Convert an entry from GET .../scopes into a blueprint scope."""
        return default_blueprint_scope(entry)

    def repo_name_from_listing(self, entry: dict[str, Any]) -> str | None:
        """Repository name recorded in state for a listed scope, if any."""
        return None


class RepositoryScopeHandler(ScopeHandler):
    """GitHub: one scope per repository, plus the DORA scope config."""

    uses_scope_config = True

    def __init__(self, github_factory: Callable[[str | None], GitHubClient] = GitHubClient):
        self.github_factory = github_factory

    def _resolve_repo_names(self, request: ScopeRequest) -> list[str]:
        if request.repos:
            return [r.strip() for r in request.repos if r.strip()]

        if request.repos_file:
            try:
                repos = parse_repo_file(request.repos_file)
            except OSError as e:
                raise ValidationError(
                    f"Failed to read repos file: {e}", field="repos_file", value=request.repos_file
                ) from e
            console.print(f"   Loaded {len(repos)} repo(s) from file")
            return repos

        if not request.interactive:
            return []

        if request.organization:
            console.print(f"   Listing repos in '{request.organization}'...")
            try:
                with self.github_factory(request.token) as github:
                    available = github.list_org_repos(request.organization)
            except GitHubError as e:
                console.print(f"   [yellow]⚠[/yellow] Could not list repos: {e}")
                available = []
            if available:
                return select_many(
                    f"Available repos in {request.organization} (up to {len(available)})",
                    available,
                )
            console.print(
                "   [yellow]⚠[/yellow] No repos found; verify the org name and token scopes (read:org)"
            )

        return split_repo_list(
            prompt_text("Enter repos (comma-separated, e.g. org/repo1,org/repo2)")
        )

    def resolve_scope_selection(self, request: ScopeRequest) -> ScopeSelection:
        """Resolve repository names, then look each one up on GitHub.

        Raises:
            NoRepositoriesResolvedError: If no repository was selected.
            NoRepositoryDetailsResolvedError: If every lookup failed.
        """
        console.print("\n📦 Resolving repositories...")
        repos = self._resolve_repo_names(request)
        if not repos:
            raise NoRepositoriesResolvedError("At least one repository is required")
        console.print(f"   Repos to configure: {', '.join(repos)}")

        console.print("\n🔎 Looking up repo details...")
        details: list[RepoDetails] = []
        with self.github_factory(request.token) as github:
            for repo in repos:
                try:
                    detail = github.get_repo_details(repo)
                except GitHubError as e:
                    logger.warning(f"Repository lookup failed for {repo}: {e}")
                    console.print(f"   [yellow]⚠[/yellow] Could not fetch details for '{repo}': {e}")
                    continue
                details.append(detail)
                console.print(f"   {detail.full_name} (ID: {detail.id})")

        if not details:
            raise NoRepositoryDetailsResolvedError(
                "Could not resolve any repository details; verify the repos exist "
                "and the token can read them"
            )
        return ScopeSelection(repos=repos, repo_details=details)

    def build_scope_payload(
        self, connection_id: int, selection: ScopeSelection, scope_config_id: int = 0
    ) -> list[ScopeEntry]:
        return [
            RepoScope.from_details(detail, connection_id, scope_config_id)
            for detail in selection.repo_details
        ]

    def summary_label(self, selection: ScopeSelection) -> str:
        return f"{len(selection.repo_details)} repo scope(s)"

    def blueprint_scope_from_listing(self, entry: dict[str, Any]) -> BlueprintScope:
        scope_id = entry.get("githubId") or entry.get("id") or ""
        scope_name = entry.get("fullName") or entry.get("name") or str(scope_id)
        return BlueprintScope(scope_id=str(scope_id), scope_name=scope_name)

    def repo_name_from_listing(self, entry: dict[str, Any]) -> str | None:
        return entry.get("fullName") or None


class OrganizationScopeHandler(ScopeHandler):
    """GitHub Copilot: a single organization or enterprise scope."""

    def resolve_scope_selection(self, request: ScopeRequest) -> ScopeSelection:
        return ScopeSelection(
            organization=request.organization.strip(),
            enterprise=request.enterprise.strip(),
        )

    def build_scope_payload(
        self, connection_id: int, selection: ScopeSelection, scope_config_id: int = 0
    ) -> list[ScopeEntry]:
        return [OrgScope.for_org(connection_id, selection.organization, selection.enterprise)]

    def summary_label(self, selection: ScopeSelection) -> str:
        scope = OrgScope.for_org(0, selection.organization, selection.enterprise)
        return f"scope {scope.id or '(empty)'}"
