"""Host boundary: named actions and the loading lifecycle.

The host runtime drives the chat view through two collaborators:

- ActionRegistry: a name-keyed table of handlers the host can invoke.
  The view registers the ``add-tools`` action so hosts can attach MCP
  servers and Pulse apps to a live session.
- LoadingSignal: a readiness flag and a loading toggle. The view turns
  loading off once the host reports it is ready.

Usage:
    actions = ActionRegistry()
    register_add_tools(actions, session.registry)

    # later, from the host
    await actions.invoke("add-tools", {"mcp-server": {...}})
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .capabilities import CapabilityRegistry
from .errors import UnknownActionError

logger = logging.getLogger(__name__)

ActionHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


# =============================================================================
# Action descriptors
# =============================================================================


@dataclass(frozen=True)
class ActionParameter:
    """Schema of one action parameter."""

    type: str
    description: str
    optional: bool = False


@dataclass(frozen=True)
class ActionDescriptor:
    """Description of a host-invokable action.

    Attributes:
        name: Unique action name
        description: Human-readable description
        parameters: Parameter schemas keyed by parameter name
        returns: Return schema; empty for side-effect-only actions
    """

    name: str
    description: str
    parameters: Mapping[str, ActionParameter] = field(default_factory=dict)
    returns: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Action name cannot be empty")

    def missing_required(self, params: Mapping[str, Any]) -> list[str]:
        """Names of required parameters absent from ``params``."""
        return [
            name
            for name, param in self.parameters.items()
            if not param.optional and name not in params
        ]


ADD_TOOLS_ACTION = ActionDescriptor(
    name="add-tools",
    description="Assign new tools to the agent.",
    parameters={
        "mcp-server": ActionParameter(
            type="object",
            description="The MCP server(s) available to the agent.",
            optional=True,
        ),
        "pulse-app": ActionParameter(
            type="object",
            description="The Pulse Apps available to the agent.",
            optional=True,
        ),
    },
    returns={},
)

PRE_REGISTERED_ACTIONS: dict[str, ActionDescriptor] = {ADD_TOOLS_ACTION.name: ADD_TOOLS_ACTION}


# =============================================================================
# Action registry
# =============================================================================


@dataclass
class _RegisteredAction:
    descriptor: ActionDescriptor
    handler: ActionHandler


class ActionRegistry:
    """Name-keyed table of host-invokable actions."""

    def __init__(self) -> None:
        self._actions: dict[str, _RegisteredAction] = {}

    def register(self, descriptor: ActionDescriptor, handler: ActionHandler) -> None:
        """Register a handler for an action, replacing any previous one."""
        if not callable(handler):
            raise ValueError("Action handler must be callable")
        replaced = descriptor.name in self._actions
        self._actions[descriptor.name] = _RegisteredAction(descriptor, handler)
        action = "Replaced" if replaced else "Registered"
        logger.info(f"{action} action: {descriptor.name}")

    def unregister(self, name: str) -> bool:
        """Remove an action. Returns False if it was not registered."""
        if self._actions.pop(name, None) is None:
            return False
        logger.info(f"Unregistered action: {name}")
        return True

    def get(self, name: str) -> ActionDescriptor | None:
        registered = self._actions.get(name)
        return registered.descriptor if registered else None

    def list_actions(self) -> list[ActionDescriptor]:
        return [registered.descriptor for registered in self._actions.values()]

    async def invoke(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        """Invoke an action by name.

        Args:
            name: Action name
            params: Action parameters

        Returns:
            Whatever the handler returns (None for ``add-tools``)

        Raises:
            UnknownActionError: If no action is registered under ``name``
            ValueError: If a required parameter is missing
        """
        registered = self._actions.get(name)
        if registered is None:
            raise UnknownActionError(name)

        args = dict(params or {})
        if missing := registered.descriptor.missing_required(args):
            raise ValueError(f"Action '{name}' missing required parameters: {', '.join(missing)}")

        logger.debug(f"Invoking action {name} with {sorted(args)}")
        result = registered.handler(args)
        if inspect.isawaitable(result):
            result = await result
        return result


def register_add_tools(actions: ActionRegistry, registry: CapabilityRegistry) -> None:
    """Wire the ``add-tools`` action to a capability registry."""

    def add_tools(params: dict[str, Any]) -> None:
        registry.merge_declaration(params)

    actions.register(ADD_TOOLS_ACTION, add_tools)


# =============================================================================
# Loading lifecycle
# =============================================================================


class LoadingSignal:
    """Host readiness flag plus a loading indicator toggle.

    Args:
        is_ready: Initial readiness of the host
        on_toggle: Called with the new loading value on each toggle
    """

    def __init__(
        self, is_ready: bool = False, on_toggle: Callable[[bool], None] | None = None
    ) -> None:
        self.is_ready = is_ready
        self.loading = True
        self._on_toggle = on_toggle

    def toggle_loading(self, loading: bool) -> None:
        self.loading = loading
        if self._on_toggle:
            self._on_toggle(loading)

    def set_ready(self) -> None:
        self.is_ready = True


def mark_view_ready(signal: LoadingSignal) -> bool:
    """Turn the loading indicator off once the host is ready.

    Returns:
        True if loading was turned off
    """
    if not signal.is_ready:
        return False
    signal.toggle_loading(False)
    return True
