"""Agent Chat CLI.

Usage:
    agent-chat chat                         # Interactive chat
    agent-chat chat --tools tools.yaml      # Chat with MCP servers declared up front
    agent-chat send "hello"                 # One-shot turn, print transcript
    agent-chat send "hello" --format json   # Transcript as JSON
    agent-chat mock-server --port 3000      # Serve the mock agent backend

Interactive commands:
    <text>          Send a message (while the agent is replying: stop it)
    /servers        List registered MCP servers
    /tools <file>   Declare tools from a YAML/JSON file (add-tools action)
    /quit           Exit
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from .capabilities import CapabilityRegistry
from .config import DEFAULT_ENDPOINT, ClientConfig, Framing
from .errors import AgentChatError
from .host import (
    ADD_TOOLS_ACTION,
    ActionRegistry,
    LoadingSignal,
    mark_view_ready,
    register_add_tools,
)
from .session import AgentSession
from .transcript import Speaker, TranscriptEntry

logger = logging.getLogger(__name__)

# Output format options
FORMAT_TEXT = "text"
FORMAT_JSON = "json"


def _configure_logging(level: str) -> None:
    # Transcript goes to stdout, diagnostics to stderr
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def read_declaration(path: str | Path) -> dict[str, Any]:
    """Read an ``add-tools`` declaration from a YAML or JSON file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path}: expected a mapping with 'mcp-server' and/or 'pulse-app'")
    return data


def format_entry(entry: TranscriptEntry) -> str:
    return click.style(f"{entry.speaker.value}:", bold=True) + f" {entry.content}"


def format_servers(registry: CapabilityRegistry) -> str:
    return f"Registered MCP Servers: [{', '.join(registry.server_names())}]"


def _build_session(
    config: ClientConfig, tools_path: str | None
) -> tuple[AgentSession, ActionRegistry]:
    session = AgentSession(config)
    actions = ActionRegistry()
    register_add_tools(actions, session.registry)
    if tools_path:
        session.registry.merge_declaration(read_declaration(tools_path))
    return session, actions


@click.group()
@click.option("--url", "base_url", default=None, help="Agent backend base URL")
@click.option("--endpoint", default=None, help=f"Agent endpoint path (default: {DEFAULT_ENDPOINT})")
@click.option(
    "--framing",
    type=click.Choice([f.value for f in Framing]),
    default=None,
    help="Response stream framing",
)
@click.option(
    "--log-level",
    envvar="AGENT_CHAT_LOG_LEVEL",
    default="warning",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Diagnostic log level (stderr)",
)
@click.pass_context
def main(
    ctx: click.Context,
    base_url: str | None,
    endpoint: str | None,
    framing: str | None,
    log_level: str,
) -> None:
    """Agent Chat - stream agent responses and attach tools at runtime."""
    _configure_logging(log_level)
    ctx.obj = ClientConfig.from_env().with_overrides(
        base_url=base_url,
        endpoint=endpoint,
        framing=Framing(framing) if framing else None,
    )


@main.command()
@click.option(
    "--tools",
    "tools_path",
    type=click.Path(exists=True),
    help="YAML/JSON add-tools declaration",
)
@click.pass_obj
def chat(config: ClientConfig, tools_path: str | None) -> None:
    """Interactive chat with the agent."""
    try:
        session, actions = _build_session(config, tools_path)
    except AgentChatError as e:
        raise click.ClickException(str(e)) from e
    asyncio.run(_chat_loop(session, actions))


async def _chat_loop(session: AgentSession, actions: ActionRegistry) -> None:
    signal = LoadingSignal(
        is_ready=True,
        on_toggle=lambda loading: logger.debug(f"Loading: {loading}"),
    )

    def show(entry: TranscriptEntry) -> None:
        if entry.speaker == Speaker.AGENT:
            click.echo(format_entry(entry))

    session.transcript.subscribe(show)
    mark_view_ready(signal)

    click.echo(click.style("Agent Chat", bold=True) + f" ({session.config.url})")
    click.echo(format_servers(session.registry))
    click.echo("Type a message. While the agent replies, press Enter to stop it. /quit to exit.")

    loop = asyncio.get_running_loop()
    async with session:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                # End of input: let a running reply finish before closing
                await session.wait()
                break
            text = line.strip()

            if text in ("/quit", "/exit"):
                break
            if text == "/servers":
                click.echo(format_servers(session.registry))
                continue
            if text.startswith("/tools"):
                await _declare_tools(actions, text.removeprefix("/tools").strip())
                continue
            if not text and not session.is_running:
                continue

            await session.send(text)
            if not session.is_running:
                click.echo(click.style("(stopped)", dim=True))


async def _declare_tools(actions: ActionRegistry, path: str) -> None:
    if not path:
        click.echo("Usage: /tools <file>", err=True)
        return
    try:
        await actions.invoke(ADD_TOOLS_ACTION.name, read_declaration(path))
    except (OSError, yaml.YAMLError, click.BadParameter, AgentChatError) as e:
        click.echo(f"Could not declare tools: {e}", err=True)
        return
    click.echo(f"Declared tools from {path}")


@main.command()
@click.argument("message")
@click.option(
    "--tools",
    "tools_path",
    type=click.Path(exists=True),
    help="YAML/JSON add-tools declaration",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice([FORMAT_TEXT, FORMAT_JSON]),
    default=FORMAT_TEXT,
    help="Output format",
)
@click.pass_obj
def send(config: ClientConfig, message: str, tools_path: str | None, output_format: str) -> None:
    """Send one message and print the transcript."""
    try:
        session, _ = _build_session(config, tools_path)
    except AgentChatError as e:
        raise click.ClickException(str(e)) from e

    if output_format == FORMAT_TEXT:
        session.transcript.subscribe(lambda entry: click.echo(format_entry(entry)))

    asyncio.run(_send_once(session, message))

    if output_format == FORMAT_JSON:
        entries = [entry.model_dump(mode="json", by_alias=True) for entry in session.transcript]
        click.echo(json.dumps(entries, indent=2))


async def _send_once(session: AgentSession, message: str) -> None:
    async with session:
        await session.send(message)
        await session.wait()


@main.command("mock-server")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=3000, help="Port to bind to")
@click.option("--ndjson", is_flag=True, help="Terminate each chunk with a newline")
@click.option("--delay", default=0.0, help="Seconds between chunks")
@click.pass_obj
def mock_server(config: ClientConfig, host: str, port: int, ndjson: bool, delay: float) -> None:
    """Serve the mock agent backend."""
    import uvicorn

    from .mock_backend import create_mock_app

    app = create_mock_app(endpoint=config.endpoint, newline_delimited=ndjson, chunk_delay=delay)
    click.echo(f"Mock agent backend on http://{host}:{port}{config.endpoint}", err=True)
    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    main()
