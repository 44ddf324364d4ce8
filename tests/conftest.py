"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from agent_chat_runtime.capabilities import CapabilityRegistry
from agent_chat_runtime.config import ClientConfig

BASE_URL = "http://agent.test"


@pytest.fixture
def config() -> ClientConfig:
    """Client config pointing at the mock backend host."""
    return ClientConfig(base_url=BASE_URL)


@pytest.fixture
def registry() -> CapabilityRegistry:
    """Fresh capability registry."""
    return CapabilityRegistry()


@pytest.fixture
def weather_declaration() -> dict[str, Any]:
    """The add-tools parameters declaring a single weather server."""
    return {"mcp-server": {"weather": {"command": "wx", "args": [], "type": "stdio"}}}
