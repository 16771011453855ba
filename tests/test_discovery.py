"""Tests for backend discovery."""

import json

import httpx
import pytest

from devlake_setup.discovery import discover, ping_url
from devlake_setup.exceptions import DiscoveryError


def transport_for(reachable: set[str]) -> httpx.MockTransport:
    """Answer /ping with 200 for the given hosts (host:port) and refuse the rest."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.netloc.decode() in reachable:
            return httpx.Response(200, json={})
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


class TestPingUrl:
    def test_ok(self):
        assert ping_url("http://devlake.test", transport_for({"devlake.test"})) is None

    def test_bad_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))

        assert ping_url("http://devlake.test", transport) == "status 503"

    def test_unreachable(self):
        assert "refused" in ping_url("http://devlake.test", transport_for(set()))


class TestDiscover:
    """Test the discovery priority order."""

    def test_explicit_url(self, tmp_path):
        result = discover("http://devlake.test/", tmp_path, transport_for({"devlake.test"}))

        assert result.url == "http://devlake.test"
        assert result.source == "parameter"

    def test_explicit_url_unreachable_does_not_fall_back(self, tmp_path):
        transport = transport_for({"localhost:8080"})

        with pytest.raises(DiscoveryError, match="Cannot reach DevLake at http://devlake.test"):
            discover("http://devlake.test", tmp_path, transport)

    def test_state_file(self, tmp_path):
        (tmp_path / ".devlake-local.json").write_text(
            json.dumps(
                {"endpoints": {"backend": "http://devlake.test/", "grafana": "http://grafana.test"}}
            )
        )

        result = discover(None, tmp_path, transport_for({"devlake.test", "localhost:8080"}))

        assert result.url == "http://devlake.test"
        assert result.grafana_url == "http://grafana.test"
        assert result.source == "statefile"

    def test_unreachable_state_file_falls_through(self, tmp_path):
        (tmp_path / ".devlake-azure.json").write_text(
            json.dumps({"endpoints": {"backend": "https://devlake.azure.test"}})
        )

        result = discover(None, tmp_path, transport_for({"localhost:8085"}))

        assert result.url == "http://localhost:8085"
        assert result.grafana_url == "http://localhost:3004"
        assert result.source == "localhost"

    def test_unreadable_state_file_is_skipped(self, tmp_path):
        (tmp_path / ".devlake-local.json").write_text("{not json")

        result = discover(None, tmp_path, transport_for({"localhost:8080"}))

        assert result.url == "http://localhost:8080"

    def test_nothing_found(self, tmp_path):
        with pytest.raises(DiscoveryError) as exc_info:
            discover(None, tmp_path, transport_for(set()))

        message = str(exc_info.value)
        assert "localhost:8080, localhost:8085" in message
        assert "--url" in message
