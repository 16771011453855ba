"""Tests for the configuration pipeline phases and the full workflow."""

import json
from unittest.mock import patch

import pytest

from devlake_setup.exceptions import (
    ConnectionCreateFailedError,
    NoRepositoriesResolvedError,
    NoScopedConnectionsError,
    NoTokenAvailableError,
    PhaseError,
    PipelineFailedError,
)
from devlake_setup.models import BlueprintConnection, BlueprintScope, StateConnection
from devlake_setup.options import ConnectionOptions, FullOptions, ProjectOptions, ScopeOptions
from devlake_setup.pipeline import ConfigurationPipeline, ConnectionResult, PipelinePoller
from devlake_setup.pipeline.poller import PollOutcome
from devlake_setup.pipeline.scopes import ScopeResult
from devlake_setup.registry import find_plugin
from devlake_setup.state import StateStore

GITHUB_CONNECTIONS = "/plugins/github/connections"


@pytest.fixture
def state_dir(tmp_path):
    directory = tmp_path / "deploy"
    directory.mkdir()
    return directory


@pytest.fixture
def pipeline(client, state_dir, config_manager, fake_github, monkeypatch, tmp_path):
    # Keep the default .devlake.env lookup away from the real working directory
    monkeypatch.chdir(tmp_path)
    store = StateStore(state_dir)
    path, state = store.find_or_create("http://devlake.test", "http://grafana.test")
    poller = PipelinePoller(client, interval=0, sleep=lambda _: None)
    return ConfigurationPipeline(
        client,
        store,
        path,
        state,
        config_manager=config_manager,
        github_factory=fake_github,
        poller=poller,
        tty=False,
    )


def saved_state(pipeline) -> dict:
    return json.loads(pipeline.state_path.read_text())


def add_github_create_routes(backend, connection_id=1):
    backend.add("GET", GITHUB_CONNECTIONS, 200, [])
    backend.add("POST", "/plugins/github/test", 200, {"success": True})
    backend.add("POST", GITHUB_CONNECTIONS, 200, {"id": connection_id, "name": "GitHub - acme"})


def add_project_routes(backend, pipeline_status="TASK_COMPLETED"):
    backend.add("POST", "/projects", 200, {"name": "acme", "blueprint": {"id": 5}})
    backend.add("PATCH", "/blueprints/5", 200, {"id": 5})
    backend.add("POST", "/blueprints/5/trigger", 200, {"id": 21, "status": "TASK_CREATED"})
    backend.add("GET", "/pipelines/21", 200, {"id": 21, "status": pipeline_status})


def scoped_github() -> ScopeResult:
    return ScopeResult(
        connection=BlueprintConnection(
            plugin_name="github",
            connection_id=1,
            scopes=[BlueprintScope(scope_id="101", scope_name="acme/api")],
        ),
        repos=["acme/api"],
    )


class TestSetupConnections:
    """Test phase 1."""

    def test_single_plugin_records_state(self, pipeline, backend):
        add_github_create_routes(backend)

        results = pipeline.setup_connections(
            [find_plugin("github")], ConnectionOptions(token="ghp_x", organization="acme")
        )

        assert [(r.plugin, r.connection_id) for r in results] == [("github", 1)]
        data = saved_state(pipeline)
        assert data["connections"] == [
            {"plugin": "github", "connectionId": 1, "name": "GitHub - acme", "organization": "acme"}
        ]
        assert "connectionsConfiguredAt" in data
        assert data["method"] == "local"

    def test_single_plugin_error_propagates(self, pipeline):
        with pytest.raises(NoTokenAvailableError):
            pipeline.setup_connections([find_plugin("github")], ConnectionOptions())

        assert not pipeline.state_path.exists()

    def test_failing_plugin_is_skipped_when_several(self, pipeline, backend):
        add_github_create_routes(backend)

        results = pipeline.setup_connections(
            [find_plugin("github"), find_plugin("gh-copilot")], ConnectionOptions(token="t")
        )

        # Copilot needs an organization and none is known
        assert [r.plugin for r in results] == ["github"]

    def test_all_plugins_failing(self, pipeline):
        with pytest.raises(ConnectionCreateFailedError, match="No connections were created"):
            pipeline.setup_connections(
                [find_plugin("github"), find_plugin("gh-copilot")], ConnectionOptions()
            )

    def test_env_file_is_cleaned_up(self, pipeline, backend, tmp_path):
        add_github_create_routes(backend)
        env_file = tmp_path / ".devlake.env"
        env_file.write_text("GITHUB_PAT=ghp_file\n")

        pipeline.setup_connections(
            [find_plugin("github")], ConnectionOptions(env_file=str(env_file), organization="acme")
        )

        assert not env_file.exists()
        assert backend.json_body("POST", GITHUB_CONNECTIONS)["token"] == "ghp_file"

    def test_skip_cleanup_keeps_env_file(self, pipeline, backend, tmp_path):
        add_github_create_routes(backend)
        env_file = tmp_path / ".devlake.env"
        env_file.write_text("GITHUB_PAT=ghp_file\n")

        pipeline.setup_connections(
            [find_plugin("github")],
            ConnectionOptions(env_file=str(env_file), organization="acme", skip_cleanup=True),
        )

        assert env_file.exists()

    def test_remember_token(self, pipeline, backend):
        add_github_create_routes(backend)

        pipeline.setup_connections(
            [find_plugin("github")],
            ConnectionOptions(token="ghp_keep", organization="acme", remember_token=True),
        )

        assert pipeline.config_manager.get_token("github") == "ghp_keep"

    def test_stored_token_is_used(self, pipeline, backend, config_manager):
        add_github_create_routes(backend)
        config_manager.set_token("github", "ghp_stored")

        pipeline.setup_connections([find_plugin("github")], ConnectionOptions(organization="acme"))

        assert backend.json_body("POST", GITHUB_CONNECTIONS)["token"] == "ghp_stored"

    def test_other_plugins_in_state_are_kept(self, pipeline, backend):
        add_github_create_routes(backend)
        pipeline.state.connections = [
            StateConnection(plugin="gh-copilot", connection_id=2, name="Copilot", organization="acme")
        ]

        pipeline.setup_connections([find_plugin("github")], ConnectionOptions(token="t"))

        assert [c["plugin"] for c in saved_state(pipeline)["connections"]] == ["gh-copilot", "github"]


class TestOrganizationResolution:
    def test_flag_then_state(self, pipeline):
        pipeline.state.connections = [
            StateConnection(plugin="github", connection_id=1, name="x", organization="from-state")
        ]

        assert pipeline.resolve_organization(" flag-org ") == "flag-org"
        assert pipeline.resolve_organization("") == "from-state"

    def test_empty_without_tty(self, pipeline):
        assert pipeline.resolve_organization("") == ""
        assert pipeline.resolve_enterprise("", prompt=True) == ""


class TestSetupScopes:
    """Test phase 2."""

    def test_reuses_token_from_phase_one(self, pipeline, backend, fake_github):
        add_github_create_routes(backend)
        backend.add("POST", "/plugins/github/connections/1/scope-configs", 200, {"id": 3, "name": "dora-config"})
        backend.add("PUT", "/plugins/github/connections/1/scopes", 200, [])
        results = pipeline.setup_connections(
            [find_plugin("github")], ConnectionOptions(token="ghp_once", organization="acme")
        )

        scoped = pipeline.setup_scopes(results, ScopeOptions(repos=["acme/api"]))

        assert fake_github.tokens == ["ghp_once"]
        assert scoped[0].repos == ["acme/api"]

    def test_terminal_alone_does_not_prompt_for_repos(self, pipeline):
        pipeline.tty = True

        with patch("devlake_setup.scope_handlers.select_many") as select_many:
            with pytest.raises(NoRepositoriesResolvedError):
                pipeline.scope_connection(
                    find_plugin("github"), 1, ScopeOptions(token="t"), organization="acme"
                )

        select_many.assert_not_called()

    def test_interactive_option_lists_org_repos(self, pipeline, backend):
        backend.add("POST", "/plugins/github/connections/1/scope-configs", 200, {"id": 3, "name": "dora-config"})
        backend.add("PUT", "/plugins/github/connections/1/scopes", 200, [])

        with patch("devlake_setup.scope_handlers.select_many", return_value=["acme/web"]):
            result = pipeline.scope_connection(
                find_plugin("github"), 1, ScopeOptions(interactive=True), organization="acme"
            )

        assert result.repos == ["acme/web"]

    def test_nothing_scoped(self, pipeline, backend):
        connections = [ConnectionResult(plugin="github", connection_id=1, name="x")]

        with pytest.raises(NoScopedConnectionsError):
            pipeline.setup_scopes(connections, ScopeOptions())


class TestFinalize:
    """Test phase 3 and state persistence ordering."""

    def test_completes_and_records_project(self, pipeline, backend):
        add_project_routes(backend)

        result = pipeline.finalize(
            [scoped_github()], ProjectOptions(time_after="2026-01-01"), "acme", "acme"
        )

        assert result.blueprint_id == 5
        assert result.time_after == "2026-01-01T00:00:00Z"
        assert result.poll.outcome == PollOutcome.COMPLETED
        data = saved_state(pipeline)
        assert data["project"] == {
            "name": "acme",
            "blueprintId": 5,
            "repos": ["acme/api"],
            "organization": "acme",
        }
        assert "scopesConfiguredAt" in data

    def test_state_saved_before_pipeline_failure(self, pipeline, backend):
        add_project_routes(backend, pipeline_status="TASK_FAILED")

        with pytest.raises(PipelineFailedError):
            pipeline.finalize([scoped_github()], ProjectOptions(), "acme")

        assert saved_state(pipeline)["project"]["blueprintId"] == 5

    def test_trigger_failure_is_a_warning(self, pipeline, backend):
        add_project_routes(backend)
        backend.add("POST", "/blueprints/5/trigger", 500, {"message": "busy"})

        result = pipeline.finalize([scoped_github()], ProjectOptions(), "acme")

        assert result.poll is None
        assert saved_state(pipeline)["project"]["name"] == "acme"

    def test_trigger_without_pipeline_id_is_a_warning(self, pipeline, backend):
        add_project_routes(backend)
        backend.add("POST", "/blueprints/5/trigger", 200, None)

        result = pipeline.finalize([scoped_github()], ProjectOptions(), "acme")

        assert result.poll is None
        assert saved_state(pipeline)["project"]["blueprintId"] == 5

    def test_skip_sync(self, pipeline, backend):
        add_project_routes(backend)

        result = pipeline.finalize([scoped_github()], ProjectOptions(skip_sync=True), "acme")

        assert result.poll is None
        assert backend.calls("POST", "/blueprints/5/trigger") == []

    def test_requires_scoped_connections(self, pipeline):
        with pytest.raises(NoScopedConnectionsError):
            pipeline.finalize([], ProjectOptions(), "acme")


class TestRunFull:
    """Test the full workflow."""

    def test_end_to_end_github(self, pipeline, backend):
        add_github_create_routes(backend)
        backend.add("POST", "/plugins/github/connections/1/scope-configs", 200, {"id": 3, "name": "dora-config"})
        backend.add("PUT", "/plugins/github/connections/1/scopes", 200, [])
        add_project_routes(backend)
        options = FullOptions(
            connections=ConnectionOptions(token="ghp_x", organization="acme"),
            scopes=ScopeOptions(repos=["acme/api", "acme/web"]),
            project=ProjectOptions(time_after="2026-01-01"),
        )

        result = pipeline.run_full([find_plugin("github")], options)

        assert result.project_name == "acme"
        assert result.repos == ["acme/api", "acme/web"]
        patch_body = backend.json_body("PATCH", "/blueprints/5")
        assert [s["scopeId"] for s in patch_body["connections"][0]["scopes"]] == ["101", "102"]
        data = saved_state(pipeline)
        assert data["connections"][0]["connectionId"] == 1
        assert data["project"]["repos"] == ["acme/api", "acme/web"]

    def test_project_name_defaults(self, pipeline, backend):
        add_github_create_routes(backend)
        backend.add("POST", "/plugins/github/connections/1/scope-configs", 200, {"id": 3, "name": "dora-config"})
        backend.add("PUT", "/plugins/github/connections/1/scopes", 200, [])
        add_project_routes(backend)
        options = FullOptions(
            connections=ConnectionOptions(token="ghp_x"),
            scopes=ScopeOptions(repos=["acme/api"]),
            project=ProjectOptions(skip_sync=True),
        )

        result = pipeline.run_full([find_plugin("github")], options)

        assert result.project_name == "my-project"

    def test_fatal_error_is_wrapped_with_phase(self, pipeline):
        with pytest.raises(PhaseError) as exc_info:
            pipeline.run_full([find_plugin("github")], FullOptions())

        assert exc_info.value.phase == "connections"
        assert exc_info.value.details == {"error": "NoTokenAvailableError"}
        assert "Phase 'connections' failed" in str(exc_info.value)

    def test_pipeline_failure_is_not_wrapped(self, pipeline, backend):
        add_github_create_routes(backend)
        backend.add("POST", "/plugins/github/connections/1/scope-configs", 200, {"id": 3, "name": "dora-config"})
        backend.add("PUT", "/plugins/github/connections/1/scopes", 200, [])
        add_project_routes(backend, pipeline_status="TASK_FAILED")
        options = FullOptions(
            connections=ConnectionOptions(token="ghp_x", organization="acme"),
            scopes=ScopeOptions(repos=["acme/api"]),
        )

        with pytest.raises(PipelineFailedError):
            pipeline.run_full([find_plugin("github")], options)
