"""Pytest configuration and fixtures for devlake-setup tests."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from keyring.errors import PasswordDeleteError

from devlake_setup.client import DevLakeClient
from devlake_setup.config_manager import ConfigManager
from devlake_setup.exceptions import GitHubError
from devlake_setup.models import RepoDetails

BACKEND_URL = "http://devlake.test"


class FakeBackend:
    """Route table for httpx.MockTransport that records every request.

    A route is either a single (status, body) pair or a list of them, served
    in order with the last one repeating.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[tuple[int, object]]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, body: object = None):
        self.routes[(method, path)] = [(status, body)]

    def add_sequence(self, method: str, path: str, responses: list[tuple[int, object]]):
        self.routes[(method, path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"no route for {key[0]} {key[1]}"})
        queue = self.routes[key]
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        if body is None:
            return httpx.Response(status)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_body(self, method: str, path: str, index: int = -1) -> object:
        return json.loads(self.calls(method, path)[index].content)


class FakeGitHub:
    """Stand-in for GitHubClient serving canned repository details."""

    def __init__(self, repos: dict[str, int] | None = None, org_repos: list[str] | None = None):
        self.repos = repos or {}
        self.org_repos = org_repos or []
        self.tokens: list[str | None] = []

    def __call__(self, token):
        self.tokens.append(token)
        return self

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return None

    def get_repo_details(self, full_name: str) -> RepoDetails:
        if full_name not in self.repos:
            raise GitHubError(f"Failed to get {full_name}: 404 - Not Found", status_code=404)
        return RepoDetails(
            id=self.repos[full_name],
            name=full_name.split("/")[1],
            full_name=full_name,
            html_url=f"https://github.com/{full_name}",
            clone_url=f"https://github.com/{full_name}.git",
        )

    def list_org_repos(self, org: str, limit: int = 30) -> list[str]:
        return self.org_repos[:limit]


@pytest.fixture(autouse=True)
def mock_keyring():
    """Mock keyring for testing credential storage."""
    with patch("devlake_setup.config_manager.keyring") as mock:
        # Store credentials in memory for testing
        storage = {}

        def set_password(service, username, password):
            storage[f"{service}:{username}"] = password

        def get_password(service, username):
            return storage.get(f"{service}:{username}")

        def delete_password(service, username):
            key = f"{service}:{username}"
            if key not in storage:
                raise PasswordDeleteError("not found")
            del storage[key]

        mock.set_password = MagicMock(side_effect=set_password)
        mock.get_password = MagicMock(side_effect=get_password)
        mock.delete_password = MagicMock(side_effect=delete_password)
        mock.storage = storage

        yield mock


@pytest.fixture(autouse=True)
def temp_config_dir(tmp_path, monkeypatch):
    """Point ConfigManager at a temporary directory.

    Class variables are evaluated at import time, so they are overridden here.
    """
    config_dir = tmp_path / ".devlake-setup"
    monkeypatch.setenv("DEVLAKE_SETUP_CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(ConfigManager, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(ConfigManager, "CONFIG_FILE", config_dir / "config.yaml")
    return config_dir


@pytest.fixture(autouse=True)
def clean_token_env(monkeypatch):
    """Keep real tokens in the environment out of token resolution."""
    for name in ("GITHUB_TOKEN", "GH_TOKEN", "GITLAB_TOKEN", "AZURE_DEVOPS_PAT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_manager(temp_config_dir):
    return ConfigManager()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    api = DevLakeClient(BACKEND_URL, transport=httpx.MockTransport(backend.handler))
    yield api
    api.close()


@pytest.fixture
def fake_github():
    return FakeGitHub(
        repos={"acme/api": 101, "acme/web": 102},
        org_repos=["acme/api", "acme/web", "acme/docs"],
    )
