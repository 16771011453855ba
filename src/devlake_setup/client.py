"""
Minimal DevLake REST API client
Only implements the endpoints needed to configure connections, scopes and projects
"""

import logging
from collections.abc import Sequence
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from . import settings
from .exceptions import DevLakeAPIError
from .models import (
    BlueprintPatch,
    Connection,
    ConnectionCreateRequest,
    ConnectionTestRequest,
    ConnectionTestResult,
    ConnectionUpdateRequest,
    Pipeline,
    Project,
    ScopeConfig,
    ScopeEntry,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DevLakeClient:
    """Simple API client for the DevLake backend"""

    def __init__(
        self,
        base_url: str,
        timeout: float = settings.REQUEST_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("base_url is required - discover it or pass --url")
        self.base_url = base_url.rstrip("/")

        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        self.client = httpx.Client(
            base_url=self.base_url,
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.client.close()

    def close(self):
        self.client.close()

    def _make_request(self, method: str, url: str, **kwargs) -> Any:
        """Make an HTTP request with error handling"""
        try:
            response = self.client.request(method, url, **kwargs)
            response.raise_for_status()

            # Handle empty responses
            if not response.content:
                return {}

            return response.json()
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code} error for {method} {url}"
            try:
                error_detail = e.response.json()
                if isinstance(error_detail, dict) and "message" in error_detail:
                    error_msg += f": {error_detail['message']}"
                elif isinstance(error_detail, dict) and "error" in error_detail:
                    error_msg += f": {error_detail['error']}"
                else:
                    error_msg += f": {e.response.text}"
            except ValueError:
                error_msg += f": {e.response.text}"

            raise DevLakeAPIError(
                error_msg, e.response.status_code, e.response.text
            ) from e
        except httpx.RequestError as e:
            raise DevLakeAPIError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            raise DevLakeAPIError(
                f"Invalid JSON in response to {method} {url}: {str(e)}"
            ) from e

    def _validate(self, model: type[ModelT], data: Any, method: str, url: str) -> ModelT:
        """Parse a response body into ``model``, reporting off-shape bodies as API errors"""
        try:
            return model.model_validate(data)
        except ModelValidationError as e:
            raise DevLakeAPIError(
                f"Unexpected response to {method} {url}: {e.error_count()} invalid field(s)",
                response_text=str(data),
            ) from e

    # Connections API
    def list_connections(self, plugin: str) -> list[Connection]:
        """List connections for a plugin (e.g. "github", "gh-copilot")"""
        url = f"/plugins/{plugin}/connections"
        data = self._make_request("GET", url)
        if not isinstance(data, list):
            data = []
        return [self._validate(Connection, item, "GET", url) for item in data]

    def find_connection_by_name(self, plugin: str, name: str) -> Connection | None:
        """Return the first connection with exactly this name, or None"""
        for connection in self.list_connections(plugin):
            if connection.name == name:
                return connection
        return None

    def get_connection(self, plugin: str, connection_id: int) -> Connection:
        url = f"/plugins/{plugin}/connections/{connection_id}"
        return self._validate(Connection, self._make_request("GET", url), "GET", url)

    def test_connection(
        self, plugin: str, request: ConnectionTestRequest
    ) -> ConnectionTestResult:
        """Test connection parameters before creating"""
        url = f"/plugins/{plugin}/test"
        data = self._make_request("POST", url, json=request.to_api())
        return self._validate(ConnectionTestResult, data, "POST", url)

    def create_connection(
        self, plugin: str, request: ConnectionCreateRequest
    ) -> Connection:
        url = f"/plugins/{plugin}/connections"
        data = self._make_request("POST", url, json=request.to_api())
        return self._validate(Connection, data, "POST", url)

    def update_connection(
        self, plugin: str, connection_id: int, request: ConnectionUpdateRequest
    ) -> Connection:
        url = f"/plugins/{plugin}/connections/{connection_id}"
        data = self._make_request("PATCH", url, json=request.to_api())
        return self._validate(Connection, data, "PATCH", url)

    def delete_connection(self, plugin: str, connection_id: int) -> None:
        self._make_request("DELETE", f"/plugins/{plugin}/connections/{connection_id}")

    def test_saved_connection(
        self, plugin: str, connection_id: int
    ) -> ConnectionTestResult:
        """Test an existing connection by ID.

        A 200 response whose body is not JSON counts as success.
        """
        url = f"/plugins/{plugin}/connections/{connection_id}/test"
        try:
            response = self.client.post(url, json={})
        except httpx.RequestError as e:
            raise DevLakeAPIError(f"Request failed: {str(e)}") from e

        try:
            data = response.json()
        except ValueError:
            if response.status_code == 200:
                return ConnectionTestResult(success=True)
            raise DevLakeAPIError(
                f"HTTP {response.status_code} error for POST {url}: {response.text}",
                response.status_code,
                response.text,
            ) from None
        if not isinstance(data, dict):
            return ConnectionTestResult(success=response.status_code == 200)
        return self._validate(ConnectionTestResult, data, "POST", url)

    # Scope configs API
    def create_scope_config(
        self, plugin: str, connection_id: int, config: ScopeConfig
    ) -> ScopeConfig:
        url = f"/plugins/{plugin}/connections/{connection_id}/scope-configs"
        data = self._make_request("POST", url, json=config.to_api())
        return self._validate(ScopeConfig, data, "POST", url)

    def list_scope_configs(self, plugin: str, connection_id: int) -> list[ScopeConfig]:
        url = f"/plugins/{plugin}/connections/{connection_id}/scope-configs"
        data = self._make_request("GET", url)
        if not isinstance(data, list):
            data = []
        return [self._validate(ScopeConfig, item, "GET", url) for item in data]

    # Scopes API
    def put_scopes(
        self,
        plugin: str,
        connection_id: int,
        entries: Sequence[ScopeEntry],
    ) -> None:
        """Batch upsert scope entries for a connection"""
        payload = {"data": [entry.to_payload() for entry in entries]}
        self._make_request(
            "PUT", f"/plugins/{plugin}/connections/{connection_id}/scopes", json=payload
        )

    def list_scopes(self, plugin: str, connection_id: int) -> list[dict[str, Any]]:
        """List scopes on a connection, unwrapping {"scope": {...}} entries"""
        data = self._make_request(
            "GET", f"/plugins/{plugin}/connections/{connection_id}/scopes"
        )
        entries = data.get("scopes", []) if isinstance(data, dict) else data or []
        scopes = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            scope = entry.get("scope", entry)
            if isinstance(scope, dict):
                scopes.append(scope)
        return scopes

    # Projects API
    def create_project(self, project: Project) -> Project:
        data = self._make_request("POST", "/projects", json=project.to_api())
        return self._validate(Project, data, "POST", "/projects")

    def get_project(self, name: str) -> Project:
        url = f"/projects/{name}"
        return self._validate(Project, self._make_request("GET", url), "GET", url)

    # Blueprints API
    def patch_blueprint(self, blueprint_id: int, patch: BlueprintPatch) -> dict[str, Any]:
        return self._make_request(
            "PATCH", f"/blueprints/{blueprint_id}", json=patch.to_api()
        )

    def trigger_blueprint(self, blueprint_id: int) -> Pipeline:
        url = f"/blueprints/{blueprint_id}/trigger"
        return self._validate(Pipeline, self._make_request("POST", url), "POST", url)

    # Pipelines API
    def get_pipeline(self, pipeline_id: int) -> Pipeline:
        url = f"/pipelines/{pipeline_id}"
        return self._validate(Pipeline, self._make_request("GET", url), "GET", url)
