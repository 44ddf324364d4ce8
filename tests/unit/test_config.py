"""Tests for ClientConfig."""

from __future__ import annotations

import pytest

from agent_chat_runtime.config import DEFAULT_ENDPOINT, ClientConfig, Framing


class TestClientConfig:
    """Tests for ClientConfig defaults and helpers."""

    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.endpoint == DEFAULT_ENDPOINT == "/server-function/agent"
        assert config.read_timeout is None
        assert config.framing is Framing.CHUNK
        assert config.headers == {}

    def test_url_joins_base_and_endpoint(self) -> None:
        config = ClientConfig(base_url="http://host:1234/", endpoint="agent")
        assert config.endpoint == "/agent"
        assert config.url == "http://host:1234/agent"

    def test_framing_from_string(self) -> None:
        assert ClientConfig(framing="ndjson").framing is Framing.NDJSON  # type: ignore[arg-type]

    def test_invalid_framing(self) -> None:
        with pytest.raises(ValueError):
            ClientConfig(framing="xml")  # type: ignore[arg-type]

    def test_with_overrides_ignores_none(self) -> None:
        config = ClientConfig(base_url="http://a")
        updated = config.with_overrides(base_url=None, endpoint="/x")
        assert updated.base_url == "http://a"
        assert updated.endpoint == "/x"
        assert config.endpoint == DEFAULT_ENDPOINT


class TestFromEnv:
    """Tests for ClientConfig.from_env."""

    def test_empty_environment(self) -> None:
        assert ClientConfig.from_env({}) == ClientConfig()

    def test_all_variables(self) -> None:
        config = ClientConfig.from_env(
            {
                "AGENT_CHAT_BASE_URL": "http://agent:8080",
                "AGENT_CHAT_ENDPOINT": "api/agent",
                "AGENT_CHAT_TIMEOUT": "5",
                "AGENT_CHAT_READ_TIMEOUT": "60",
                "AGENT_CHAT_FRAMING": "NDJSON",
            }
        )
        assert config.url == "http://agent:8080/api/agent"
        assert config.connect_timeout == 5.0
        assert config.read_timeout == 60.0
        assert config.framing is Framing.NDJSON

    def test_bad_values_fall_back(self, caplog: pytest.LogCaptureFixture) -> None:
        config = ClientConfig.from_env({"AGENT_CHAT_TIMEOUT": "soon", "AGENT_CHAT_FRAMING": "xml"})
        assert config.connect_timeout == 30.0
        assert config.framing is Framing.CHUNK
        assert "AGENT_CHAT_TIMEOUT" in caplog.text
        assert "AGENT_CHAT_FRAMING" in caplog.text

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_CHAT_BASE_URL", "http://from-env")
        assert ClientConfig.from_env().base_url == "http://from-env"
