"""Client configuration.

Defaults match a Pulse-style host that serves the agent at
``/server-function/agent``. Every field can be overridden from the
environment via :meth:`ClientConfig.from_env`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_ENDPOINT = "/server-function/agent"


class Framing(str, Enum):
    """How the response byte stream is split into JSON records."""

    CHUNK = "chunk"  # One complete JSON document per delivered chunk
    NDJSON = "ndjson"  # Newline-delimited JSON, buffered across chunks


@dataclass
class ClientConfig:
    """Configuration for :class:`~agent_chat_runtime.session.AgentSession`.

    Attributes:
        base_url: Scheme and host of the agent backend
        endpoint: Path of the agent endpoint
        connect_timeout: Seconds to wait for the connection to open
        read_timeout: Seconds to wait for each chunk; None waits forever
        framing: Framing mode for the response stream
        headers: Extra headers sent with every request
    """

    base_url: str = DEFAULT_BASE_URL
    endpoint: str = DEFAULT_ENDPOINT
    connect_timeout: float = 30.0
    read_timeout: float | None = None
    framing: Framing = Framing.CHUNK
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.framing, str) and not isinstance(self.framing, Framing):
            self.framing = Framing(self.framing)
        if not self.endpoint.startswith("/"):
            self.endpoint = "/" + self.endpoint

    @property
    def url(self) -> str:
        """Full URL of the agent endpoint."""
        return self.base_url.rstrip("/") + self.endpoint

    def with_overrides(self, **overrides: Any) -> ClientConfig:
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a config from ``AGENT_CHAT_*`` environment variables.

        Recognised variables:
            AGENT_CHAT_BASE_URL, AGENT_CHAT_ENDPOINT, AGENT_CHAT_TIMEOUT,
            AGENT_CHAT_READ_TIMEOUT, AGENT_CHAT_FRAMING
        """
        env = os.environ if environ is None else environ
        config = cls()

        if base_url := env.get("AGENT_CHAT_BASE_URL"):
            config.base_url = base_url
        if endpoint := env.get("AGENT_CHAT_ENDPOINT"):
            config.endpoint = endpoint if endpoint.startswith("/") else "/" + endpoint
        if timeout := env.get("AGENT_CHAT_TIMEOUT"):
            config.connect_timeout = _parse_float(
                "AGENT_CHAT_TIMEOUT", timeout, config.connect_timeout
            )
        if read_timeout := env.get("AGENT_CHAT_READ_TIMEOUT"):
            config.read_timeout = _parse_float("AGENT_CHAT_READ_TIMEOUT", read_timeout, None)
        if framing := env.get("AGENT_CHAT_FRAMING"):
            try:
                config.framing = Framing(framing.lower())
            except ValueError:
                logger.warning(f"Ignoring unknown AGENT_CHAT_FRAMING value: {framing}")

        return config


def _parse_float(name: str, value: str, default: float | None) -> float | None:
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name} value: {value}")
        return default
