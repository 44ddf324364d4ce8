"""Tests for the host boundary - actions, add-tools and the loading signal."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_chat_runtime.capabilities import CapabilityRegistry
from agent_chat_runtime.errors import CapabilityDeclarationError, UnknownActionError
from agent_chat_runtime.host import (
    ADD_TOOLS_ACTION,
    PRE_REGISTERED_ACTIONS,
    ActionDescriptor,
    ActionParameter,
    ActionRegistry,
    LoadingSignal,
    mark_view_ready,
    register_add_tools,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def actions() -> ActionRegistry:
    """Fresh action registry."""
    return ActionRegistry()


@pytest.fixture
def echo_action() -> ActionDescriptor:
    """An action with one required and one optional parameter."""
    return ActionDescriptor(
        name="echo",
        description="Echo the text back",
        parameters={
            "text": ActionParameter(type="string", description="Text to echo"),
            "loud": ActionParameter(type="boolean", description="Upper-case", optional=True),
        },
        returns={"type": "string"},
    )


# =============================================================================
# ActionDescriptor
# =============================================================================


class TestActionDescriptor:
    """Tests for ActionDescriptor."""

    def test_add_tools_descriptor(self) -> None:
        """add-tools takes two optional objects and returns nothing."""
        assert ADD_TOOLS_ACTION.name == "add-tools"
        assert ADD_TOOLS_ACTION.description == "Assign new tools to the agent."
        assert set(ADD_TOOLS_ACTION.parameters) == {"mcp-server", "pulse-app"}
        assert all(p.optional and p.type == "object" for p in ADD_TOOLS_ACTION.parameters.values())
        assert ADD_TOOLS_ACTION.returns == {}
        assert PRE_REGISTERED_ACTIONS == {"add-tools": ADD_TOOLS_ACTION}

    def test_empty_name_raises(self) -> None:
        with pytest.raises(ValueError, match="name cannot be empty"):
            ActionDescriptor(name="", description="x")

    def test_missing_required(self, echo_action: ActionDescriptor) -> None:
        assert echo_action.missing_required({}) == ["text"]
        assert echo_action.missing_required({"text": "hi"}) == []


# =============================================================================
# ActionRegistry
# =============================================================================


class TestActionRegistry:
    """Tests for ActionRegistry."""

    @pytest.mark.asyncio
    async def test_invoke_sync_handler(
        self, actions: ActionRegistry, echo_action: ActionDescriptor
    ) -> None:
        def handler(params: dict[str, Any]) -> str:
            text = params["text"]
            return text.upper() if params.get("loud") else text

        actions.register(echo_action, handler)
        assert await actions.invoke("echo", {"text": "hi", "loud": True}) == "HI"

    @pytest.mark.asyncio
    async def test_invoke_async_handler(
        self, actions: ActionRegistry, echo_action: ActionDescriptor
    ) -> None:
        handler = AsyncMock(return_value="done")
        actions.register(echo_action, handler)

        assert await actions.invoke("echo", {"text": "hi"}) == "done"
        handler.assert_awaited_once_with({"text": "hi"})

    @pytest.mark.asyncio
    async def test_unknown_action(self, actions: ActionRegistry) -> None:
        with pytest.raises(UnknownActionError, match="'missing' is not registered"):
            await actions.invoke("missing")

    @pytest.mark.asyncio
    async def test_missing_required_parameter(
        self, actions: ActionRegistry, echo_action: ActionDescriptor
    ) -> None:
        handler = MagicMock()
        actions.register(echo_action, handler)
        with pytest.raises(ValueError, match="missing required parameters: text"):
            await actions.invoke("echo", {})
        handler.assert_not_called()

    def test_register_replaces(
        self, actions: ActionRegistry, echo_action: ActionDescriptor
    ) -> None:
        actions.register(echo_action, MagicMock())
        actions.register(echo_action, MagicMock())
        assert actions.list_actions() == [echo_action]

    def test_non_callable_handler(
        self, actions: ActionRegistry, echo_action: ActionDescriptor
    ) -> None:
        with pytest.raises(ValueError, match="must be callable"):
            actions.register(echo_action, "nope")  # type: ignore[arg-type]

    def test_unregister(self, actions: ActionRegistry, echo_action: ActionDescriptor) -> None:
        actions.register(echo_action, MagicMock())
        assert actions.unregister("echo") is True
        assert actions.unregister("echo") is False
        assert actions.get("echo") is None


# =============================================================================
# add-tools
# =============================================================================


class TestAddTools:
    """The add-tools action merges into the capability registry."""

    @pytest.mark.asyncio
    async def test_add_tools_merges(
        self, actions: ActionRegistry, registry: CapabilityRegistry, weather_declaration: dict
    ) -> None:
        register_add_tools(actions, registry)

        result = await actions.invoke("add-tools", weather_declaration)

        assert result is None
        assert registry.server_names() == ["weather"]

    @pytest.mark.asyncio
    async def test_add_tools_without_parameters(
        self, actions: ActionRegistry, registry: CapabilityRegistry
    ) -> None:
        register_add_tools(actions, registry)
        await actions.invoke("add-tools")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_add_tools_repeated(
        self, actions: ActionRegistry, registry: CapabilityRegistry
    ) -> None:
        register_add_tools(actions, registry)
        await actions.invoke(
            "add-tools", {"mcp-server": {"a": {"command": "1"}}, "pulse-app": [{"name": "x"}]}
        )
        await actions.invoke(
            "add-tools", {"mcp-server": {"a": {"command": "2"}}, "pulse-app": [{"name": "x"}]}
        )

        assert registry.servers["a"].command == "2"
        assert [app.name for app in registry.apps] == ["x", "x"]

    @pytest.mark.asyncio
    async def test_add_tools_malformed(
        self, actions: ActionRegistry, registry: CapabilityRegistry
    ) -> None:
        register_add_tools(actions, registry)
        with pytest.raises(CapabilityDeclarationError):
            await actions.invoke("add-tools", {"mcp-server": ["a"]})

    @pytest.mark.asyncio
    async def test_add_tools_skips_invalid_server(
        self, actions: ActionRegistry, registry: CapabilityRegistry
    ) -> None:
        register_add_tools(actions, registry)
        await actions.invoke(
            "add-tools", {"mcp-server": {"a": {"args": []}, "b": {"command": "wx"}}}
        )
        assert registry.server_names() == ["b"]


# =============================================================================
# LoadingSignal
# =============================================================================


class TestLoadingSignal:
    """Tests for the host loading lifecycle."""

    def test_ready_host_turns_loading_off(self) -> None:
        on_toggle = MagicMock()
        signal = LoadingSignal(is_ready=True, on_toggle=on_toggle)

        assert mark_view_ready(signal) is True
        assert signal.loading is False
        on_toggle.assert_called_once_with(False)

    def test_not_ready_host_keeps_loading(self) -> None:
        signal = LoadingSignal()
        assert mark_view_ready(signal) is False
        assert signal.loading is True

        signal.set_ready()
        assert mark_view_ready(signal) is True
        assert signal.loading is False
