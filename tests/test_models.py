"""Tests for API and state models."""

import pytest

from devlake_setup.models import (
    Connection,
    ConnectionUpdateRequest,
    DeploymentState,
    OrgScope,
    Project,
    RepoDetails,
    RepoScope,
    derive_scope_id,
)


class TestDeriveScopeId:
    """Test organization/enterprise scope identifiers."""

    @pytest.mark.parametrize(
        ("organization", "enterprise", "expected"),
        [
            ("acme", "", "acme"),
            ("", "big-corp", "big-corp"),
            ("acme", "big-corp", "big-corp/acme"),
            ("  acme ", "  ", "acme"),
            ("", "", ""),
        ],
    )
    def test_derivation(self, organization, enterprise, expected):
        assert derive_scope_id(organization, enterprise) == expected


class TestScopeEntries:
    """Test the per-variant payload serializers."""

    def test_org_scope_with_enterprise(self):
        scope = OrgScope.for_org(4, "acme", "big-corp")

        payload = scope.to_payload()

        assert payload["id"] == "big-corp/acme"
        assert payload["enterprise"] == "big-corp"
        assert payload["name"] == payload["fullName"] == "big-corp/acme"
        assert scope.blueprint_scope().scope_id == "big-corp/acme"

    def test_org_scope_without_enterprise_omits_key(self):
        payload = OrgScope.for_org(4, "acme", "").to_payload()

        assert "enterprise" not in payload

    def test_repo_scope_from_details(self):
        details = RepoDetails(
            id=101,
            name="api",
            full_name="acme/api",
            html_url="https://github.com/acme/api",
            clone_url="https://github.com/acme/api.git",
        )

        scope = RepoScope.from_details(details, connection_id=1, scope_config_id=3)

        assert scope.to_payload() == {
            "githubId": 101,
            "connectionId": 1,
            "name": "api",
            "fullName": "acme/api",
            "htmlUrl": "https://github.com/acme/api",
            "cloneUrl": "https://github.com/acme/api.git",
            "scopeConfigId": 3,
        }
        blueprint_scope = scope.blueprint_scope()
        assert blueprint_scope.scope_id == "101"
        assert blueprint_scope.scope_name == "acme/api"


class TestApiModels:
    """Test tolerance for nulls and camelCase on the wire."""

    def test_connection_nulls_become_empty(self):
        connection = Connection.model_validate(
            {"id": 1, "name": "x", "organization": None, "enterprise": None}
        )

        assert connection.organization == ""
        assert connection.enterprise == ""

    def test_project_null_metrics_and_blueprint(self):
        project = Project.model_validate(
            {"name": "acme", "metrics": None, "blueprint": {"id": 5, "connections": None}}
        )

        assert project.metrics == []
        assert project.blueprint.id == 5
        assert project.blueprint.connections == []

    def test_update_request_is_empty(self):
        assert ConnectionUpdateRequest().is_empty()
        assert not ConnectionUpdateRequest(proxy="").is_empty()

    def test_update_request_token_sets_auth_method(self):
        request = ConnectionUpdateRequest(token="t", auth_method="AccessToken")

        assert request.to_api() == {"token": "t", "authMethod": "AccessToken"}


class TestDeploymentState:
    """Test the persisted state document."""

    def test_reads_camel_case(self):
        state = DeploymentState.model_validate(
            {
                "deployedAt": "2026-01-02T03:04:05Z",
                "method": "azure",
                "endpoints": {"backend": "http://b", "grafana": "http://g", "configUi": "http://c"},
                "connections": [
                    {"plugin": "github", "connectionId": 1, "name": "GitHub - acme", "organization": ""},
                    {"plugin": "gh-copilot", "connectionId": 2, "name": "Copilot", "organization": "acme"},
                ],
                "extraDeploymentKey": {"kept": True},
            }
        )

        assert state.endpoints.config_ui == "http://c"
        assert state.connections[0].organization is None
        assert state.first_organization() == "acme"
        assert [c.connection_id for c in state.connections_for("gh-copilot")] == [2]

    def test_writes_camel_case_without_nulls(self):
        state = DeploymentState(deployed_at="2026-01-02T03:04:05Z", method="local")

        data = state.to_api()

        assert data["deployedAt"] == "2026-01-02T03:04:05Z"
        assert "project" not in data
        assert "connectionsConfiguredAt" not in data

    def test_first_enterprise_empty(self):
        assert DeploymentState().first_enterprise() == ""
