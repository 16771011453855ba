import logging
import re

import httpx

from . import settings
from .exceptions import GitHubError
from .models import RepoDetails

logger = logging.getLogger(__name__)

_GITHUB_URL = re.compile(
    r"^(?:https?://github\.com/|git@github\.com:|ssh://git@github\.com(?::\d+)?/)"
    r"(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)


def parse_repo_name(value: str) -> tuple[str, str] | None:
    """Parse "owner/repo" or a GitHub URL into (owner, repo).

    Returns:
        Tuple of (owner, repo), or None if the value is not a GitHub repository.
    """
    value = value.strip()
    if match := _GITHUB_URL.match(value):
        return match.group("owner"), match.group("repo")
    parts = value.split("/")
    if len(parts) == 2 and all(parts) and "." not in parts[0]:
        return parts[0], parts[1]
    return None


class GitHubClient:
    """GitHub API client."""

    def __init__(
        self,
        token: str | None,
        base_url: str = settings.GITHUB_API_URL,
        transport: httpx.BaseTransport | None = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        # Anonymous lookups still work for public repositories
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.Client(
            base_url=self.base_url,
            headers=self.headers,
            timeout=settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.client.close()

    def close(self):
        self.client.close()

    def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """Make an authenticated request to the GitHub API."""
        try:
            return self.client.request(method, endpoint, **kwargs)
        except httpx.RequestError as e:
            raise GitHubError(f"Network error connecting to GitHub: {str(e)}") from e

    def _parse_error_response(self, response: httpx.Response, operation: str) -> str:
        """Parse GitHub API error response into a descriptive message."""
        error_msg = f"Failed to {operation}: {response.status_code}"
        try:
            error_details = response.json().get("message", response.text)
            error_msg += f" - {error_details}"
        except ValueError:
            error_msg += f" - {response.text}"
        return error_msg

    def get_repo_details(self, full_name: str) -> RepoDetails:
        """Look up canonical metadata (numeric id, URLs) for a repository.

        Args:
            full_name: "owner/repo" or a GitHub URL.

        Raises:
            GitHubError: If the name is malformed or the lookup fails.
        """
        parsed = parse_repo_name(full_name)
        if parsed is None:
            raise GitHubError(f"Invalid repository name '{full_name}' (expected owner/repo)")
        owner, repo = parsed

        response = self._request("GET", f"/repos/{owner}/{repo}")
        if response.status_code != 200:
            raise GitHubError(
                self._parse_error_response(response, f"get {owner}/{repo}"),
                status_code=response.status_code,
                response_text=response.text,
            )
        try:
            return RepoDetails.model_validate(response.json())
        except ValueError as e:
            raise GitHubError(
                f"Unexpected response for {owner}/{repo}: {str(e)}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

    def list_org_repos(self, org: str, limit: int = settings.REPO_LIST_LIMIT) -> list[str]:
        """List up to ``limit`` repository full names in an organization.

        Falls back to the user endpoint when ``org`` is a personal account.
        """
        params = {"per_page": min(limit, 100), "sort": "updated"}
        response = self._request("GET", f"/orgs/{org}/repos", params=params)
        if response.status_code == 404:
            logger.debug(f"{org} is not an organization, listing user repositories")
            response = self._request("GET", f"/users/{org}/repos", params=params)
        if response.status_code != 200:
            raise GitHubError(
                self._parse_error_response(response, f"list repositories in {org}"),
                status_code=response.status_code,
                response_text=response.text,
            )
        try:
            return [repo["full_name"] for repo in response.json()[:limit]]
        except (ValueError, KeyError, TypeError) as e:
            raise GitHubError(
                f"Unexpected response listing repositories in {org}: {str(e)}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e
