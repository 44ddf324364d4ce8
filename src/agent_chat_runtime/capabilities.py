"""Capability registry for runtime tool declarations.

Hosts attach tools to a running chat session by declaring MCP servers and
Pulse apps. Declarations arrive at any time, including while a turn is in
flight, and are merged additively:

- servers: keyed by name, a later declaration replaces an earlier one
- apps: appended in arrival order, duplicates kept

The registry is read once per turn through :meth:`CapabilityRegistry.snapshot_servers`,
which returns a detached copy so later merges never alter a payload that has
already been built.

Usage:
    registry = CapabilityRegistry()
    registry.merge_declaration({
        "mcp-server": {"weather": {"command": "wx", "args": [], "type": "stdio"}},
    })
    payload = {"mcpServers": registry.snapshot_servers()}
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import CapabilityDeclarationError

logger = logging.getLogger(__name__)

# =============================================================================
# Models
# =============================================================================


class McpServerConfig(BaseModel):
    """How the agent backend should launch or reach an MCP server.

    Serialised with the wire name ``type`` for the transport.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    command: str
    args: tuple[str, ...] = ()
    transport: Literal["stdio", "sse"] = Field(default="stdio", alias="type")

    def to_wire(self) -> dict[str, Any]:
        """Serialise to the ``mcpServers`` entry shape."""
        return {"command": self.command, "args": list(self.args), "type": self.transport}


class PulseAppDescriptor(BaseModel):
    """A Pulse app offered to the agent."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    version: str = ""


class CapabilityUpdate(BaseModel):
    """One additive update to the registry.

    Accepts both the Python field names (``servers``, ``apps``) and the
    ``add-tools`` wire names (``mcp-server``, ``pulse-app``). A missing
    field means no change for that field.
    """

    model_config = ConfigDict(populate_by_name=True)

    servers: dict[str, McpServerConfig] | None = Field(default=None, alias="mcp-server")
    apps: list[PulseAppDescriptor] | None = Field(default=None, alias="pulse-app")

    @field_validator("apps", mode="before")
    @classmethod
    def _wrap_single_app(cls, value: Any) -> Any:
        # The add-tools action declares pulse-app as an object, so a lone
        # descriptor is accepted as a one-element list.
        if isinstance(value, Mapping):
            return [value]
        return value


ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate_entry(model: type[ModelT], entry: Any, label: str) -> ModelT | None:
    try:
        return model.model_validate(entry)
    except ValidationError as e:
        logger.warning(
            f"Skipping invalid {label} declaration: {e.error_count()} validation error(s)"
        )
        logger.debug(f"{label}: {e}")
        return None


# =============================================================================
# Registry
# =============================================================================


class CapabilityRegistry:
    """Session-scoped store of declared MCP servers and Pulse apps.

    Merges and snapshots are serialised by a lock that is held only for the
    duration of the dict/list operation, so it is safe to merge from a host
    callback while a turn is streaming.
    """

    def __init__(self) -> None:
        self._servers: dict[str, McpServerConfig] = {}
        self._apps: list[PulseAppDescriptor] = []
        self._lock = threading.Lock()

    def merge(self, update: CapabilityUpdate | Mapping[str, Any]) -> None:
        """Merge an update into the registry.

        Args:
            update: A CapabilityUpdate or a mapping that validates as one

        Raises:
            pydantic.ValidationError: If a mapping does not match the schema
        """
        if not isinstance(update, CapabilityUpdate):
            update = CapabilityUpdate.model_validate(update)

        with self._lock:
            if update.servers:
                for name, server in update.servers.items():
                    if name in self._servers:
                        logger.info(f"Replaced MCP server declaration: {name}")
                    else:
                        logger.info(f"Registered MCP server: {name}")
                    self._servers[name] = server
            if update.apps:
                self._apps.extend(update.apps)
                logger.info(f"Registered Pulse apps: {', '.join(app.name for app in update.apps)}")

    def merge_declaration(self, params: Mapping[str, Any] | None) -> None:
        """Merge the parameters of an ``add-tools`` action invocation.

        A server or app entry that does not validate is logged and skipped;
        the remaining entries are still merged.

        Args:
            params: ``{"mcp-server"?: {...}, "pulse-app"?: [...]}``

        Raises:
            CapabilityDeclarationError: If ``mcp-server`` is not an object or
                ``pulse-app`` is neither an object nor a list
        """
        params = params or {}
        raw_servers = params.get("mcp-server")
        raw_apps = params.get("pulse-app")

        if raw_servers is not None and not isinstance(raw_servers, Mapping):
            raise CapabilityDeclarationError(
                "Invalid add-tools declaration: 'mcp-server' must be an object, "
                f"got {type(raw_servers).__name__}"
            )
        if isinstance(raw_apps, Mapping):
            raw_apps = [raw_apps]
        if raw_apps is not None and not isinstance(raw_apps, list):
            raise CapabilityDeclarationError(
                "Invalid add-tools declaration: 'pulse-app' must be a list, "
                f"got {type(raw_apps).__name__}"
            )

        servers: dict[str, McpServerConfig] = {}
        for name, entry in (raw_servers or {}).items():
            server = _validate_entry(McpServerConfig, entry, f"MCP server '{name}'")
            if server is not None:
                servers[str(name)] = server

        apps: list[PulseAppDescriptor] = []
        for entry in raw_apps or []:
            app = _validate_entry(PulseAppDescriptor, entry, "Pulse app")
            if app is not None:
                apps.append(app)

        self.merge(CapabilityUpdate(servers=servers, apps=apps))

    def snapshot_servers(self) -> dict[str, dict[str, Any]]:
        """Detached copy of the servers map in ``mcpServers`` wire shape."""
        with self._lock:
            return {name: server.to_wire() for name, server in self._servers.items()}

    @property
    def servers(self) -> dict[str, McpServerConfig]:
        """Copy of the declared servers, keyed by name."""
        with self._lock:
            return dict(self._servers)

    @property
    def apps(self) -> list[PulseAppDescriptor]:
        """Copy of the declared apps in declaration order."""
        with self._lock:
            return list(self._apps)

    def server_names(self) -> list[str]:
        """Names of declared servers in first-declaration order."""
        with self._lock:
            return list(self._servers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._servers) + len(self._apps)
