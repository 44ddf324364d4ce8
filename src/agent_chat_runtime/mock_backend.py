"""Mock agent backend.

A small Starlette app that serves the agent endpoint and streams scripted
chunks, one JSON document per body chunk. Used by the test-suite through
``testing.ASGIStreamTransport`` and by ``agent-chat mock-server`` for local runs.

Routes:
- GET  /health          - Health check
- POST {endpoint}       - Validate the request and stream the script
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from .capabilities import McpServerConfig
from .config import DEFAULT_ENDPOINT

logger = logging.getLogger(__name__)

Chunk = dict[str, Any] | bytes | str


class AgentRequest(BaseModel):
    """Body of a request to the agent endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    user_message: str = Field(alias="userMessage")
    mcp_servers: dict[str, McpServerConfig] = Field(default_factory=dict, alias="mcpServers")


ChunkScript = Callable[[AgentRequest], list[Chunk]]


def echo_script(request: AgentRequest) -> list[Chunk]:
    """Echo the message, call one tool per declared server, then stop."""
    chunks: list[Chunk] = [{"content": f"You said: {request.user_message}"}]
    if request.mcp_servers:
        calls = [{"name": name, "arguments": {}} for name in request.mcp_servers]
        chunks.append({"tool_calls": calls})
    chunks.append({"finish_reason": "stop"})
    return chunks


def encode_chunk(chunk: Chunk) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return json.dumps(chunk).encode("utf-8")


def create_mock_app(
    script: ChunkScript | None = None,
    *,
    endpoint: str = DEFAULT_ENDPOINT,
    newline_delimited: bool = False,
    chunk_delay: float = 0.0,
) -> Starlette:
    """Create the mock backend application.

    Args:
        script: Produces the chunks streamed for a request (default: echo)
        endpoint: Path of the agent endpoint
        newline_delimited: Terminate every chunk with a newline
        chunk_delay: Seconds to sleep before each chunk

    Returns:
        Starlette app; received requests are recorded on ``app.state.requests``
    """
    run_script = script or echo_script

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    async def agent(request: Request) -> Response:
        try:
            body = await request.json()
            agent_request = AgentRequest.model_validate(body)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Rejected agent request: {e}")
            return JSONResponse({"error": "Invalid request body"}, status_code=400)

        request.app.state.requests.append(body)
        chunks = run_script(agent_request)
        logger.info(f"Streaming {len(chunks)} chunks for: {agent_request.user_message[:50]}")

        async def stream() -> AsyncIterator[bytes]:
            for chunk in chunks:
                if chunk_delay:
                    await asyncio.sleep(chunk_delay)
                data = encode_chunk(chunk)
                yield data + b"\n" if newline_delimited else data

        return StreamingResponse(
            stream(),
            media_type="application/json",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route(endpoint, agent, methods=["POST"]),
        ]
    )
    app.state.requests = []
    return app
