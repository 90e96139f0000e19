"""Unit tests for LinkConfig."""

from __future__ import annotations

import pytest

from graphql_live_link.config import DEFAULT_ENDPOINT, LinkConfig


class TestLinkConfig:
    """Tests for LinkConfig defaults and environment loading."""

    def test_defaults(self) -> None:
        config = LinkConfig()
        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.request_endpoint == DEFAULT_ENDPOINT
        assert config.max_retries == 10
        assert config.token_options() == {}

    def test_http_endpoint_overrides_request_endpoint(self) -> None:
        config = LinkConfig(endpoint="http://a/sse", http_endpoint="http://a/graphql")
        assert config.request_endpoint == "http://a/graphql"

    def test_event_source_config(self) -> None:
        config = LinkConfig(timeout=5.0, reconnect_delay=0.5, max_retries=None)
        source_config = config.to_event_source_config()

        assert source_config.timeout == 5.0
        assert source_config.reconnect_delay == 0.5
        assert source_config.max_retries is None

    def test_token_options(self) -> None:
        assert LinkConfig(token_template="grafbase").token_options() == {"template": "grafbase"}

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GRAPHQL_LIVE_API_URL", "https://api.example.com/graphql")
        monkeypatch.setenv("GRAPHQL_LIVE_TIMEOUT", "12.5")
        monkeypatch.setenv("GRAPHQL_LIVE_MAX_RETRIES", "unlimited")
        monkeypatch.setenv("GRAPHQL_LIVE_TOKEN_TEMPLATE", "grafbase")
        monkeypatch.setenv("GRAPHQL_LIVE_REQUIRE_TOKEN", "true")
        monkeypatch.delenv("GRAPHQL_LIVE_HTTP_URL", raising=False)

        config = LinkConfig.from_env()

        assert config.endpoint == "https://api.example.com/graphql"
        assert config.request_endpoint == "https://api.example.com/graphql"
        assert config.timeout == 12.5
        assert config.max_retries is None
        assert config.token_template == "grafbase"
        assert config.require_token is True

    def test_from_env_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "GRAPHQL_LIVE_API_URL",
            "GRAPHQL_LIVE_HTTP_URL",
            "GRAPHQL_LIVE_TIMEOUT",
            "GRAPHQL_LIVE_MAX_RETRIES",
            "GRAPHQL_LIVE_TOKEN_TEMPLATE",
            "GRAPHQL_LIVE_REQUIRE_TOKEN",
        ):
            monkeypatch.delenv(name, raising=False)

        assert LinkConfig.from_env() == LinkConfig()

    def test_invalid_number_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GRAPHQL_LIVE_TIMEOUT", "fast")
        with pytest.raises(ValueError, match="GRAPHQL_LIVE_TIMEOUT"):
            LinkConfig.from_env()
