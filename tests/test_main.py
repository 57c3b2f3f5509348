"""Tests for server assembly in fortnox_mcp.main."""

import pytest

from fortnox_mcp.auth.middleware import SessionAuthMiddleware
from fortnox_mcp.auth.providers import DatabaseTokenProvider, EnvTokenProvider
from fortnox_mcp.auth.registry import get_token_provider
from fortnox_mcp.config import Settings
from fortnox_mcp.core.exceptions import MissingConfigurationError
from fortnox_mcp.main import create_mcp_server, run


class TestCreateMcpServer:
    def test_local_mode(self):
        mcp, middleware = create_mcp_server(Settings(fortnox_access_token="t"))

        assert mcp.name == "Fortnox MCP Server"
        assert middleware == []
        assert isinstance(get_token_provider(), EnvTokenProvider)

    def test_remote_mode(self):
        settings = Settings(
            auth_mode="remote",
            server_url="https://mcp.example.com",
            jwt_secret="secret",
            fortnox_client_id="id",
            fortnox_client_secret="client-secret",
        )

        mcp, middleware = create_mcp_server(settings)

        assert isinstance(get_token_provider(), DatabaseTokenProvider)
        assert len(middleware) == 1
        assert middleware[0].cls is SessionAuthMiddleware

    def test_remote_mode_missing_configuration(self):
        with pytest.raises(MissingConfigurationError):
            create_mcp_server(Settings(auth_mode="remote"))


def test_run_exits_on_missing_configuration(monkeypatch):
    monkeypatch.setenv("AUTH_MODE", "remote")

    with pytest.raises(SystemExit) as exc_info:
        run()

    assert exc_info.value.code == 1
