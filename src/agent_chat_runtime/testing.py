"""In-memory agent backend for tests.

ScriptedBackend plugs into ``httpx.MockTransport`` and streams scripted
chunks, one per body chunk, recording every request it receives.
ASGIStreamTransport serves an ASGI app (such as the mock backend) in
process with chunk boundaries intact. No actual I/O.

Usage:
    backend = ScriptedBackend([{"content": "Hello"}, {"finish_reason": "stop"}])
    async with backend.client() as client:
        session = AgentSession(config, http_client=client)
        await session.send("hi")
        await session.wait()

    assert backend.requests[0]["userMessage"] == "hi"
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
from starlette.types import ASGIApp

HANG = object()
"""Script marker: block the stream at this point until the turn is cancelled."""


class ScriptedBackend:
    """Mock agent endpoint for ``httpx.MockTransport``.

    Each request gets the next script from ``scripts``; the last script is
    reused once they run out. Script items are dicts (sent as JSON), raw
    bytes (sent as-is) or :data:`HANG`.

    Attributes:
        requests: Decoded JSON bodies of received requests
        streaming: Set once any response stream starts
        closed_streams: Number of response streams that have ended
    """

    def __init__(self, *scripts: list[Any], status_code: int = 200) -> None:
        self.scripts = list(scripts) or [[]]
        self.status_code = status_code
        self.requests: list[dict[str, Any]] = []
        self.streaming = asyncio.Event()
        self.closed_streams = 0

    @property
    def request_count(self) -> int:
        return len(self.requests)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, base_url: str = "http://agent.test") -> httpx.AsyncClient:
        """An AsyncClient routed to this backend."""
        return httpx.AsyncClient(transport=self.transport(), base_url=base_url)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        script = self.scripts[min(len(self.requests), len(self.scripts)) - 1]
        if self.status_code != 200:
            return httpx.Response(self.status_code)
        return httpx.Response(200, content=self._stream(script))

    async def _stream(self, script: list[Any]) -> AsyncIterator[bytes]:
        self.streaming.set()
        try:
            for chunk in script:
                if chunk is HANG:
                    await asyncio.Event().wait()
                elif isinstance(chunk, bytes):
                    yield chunk
                else:
                    yield json.dumps(chunk).encode("utf-8")
        finally:
            self.closed_streams += 1


class ASGIStreamTransport(httpx.AsyncBaseTransport):
    """Route requests to an in-process ASGI app, one chunk per body message.

    ``httpx.ASGITransport`` joins the whole response body before returning
    it, which hides chunk boundaries. This transport runs the app in a task
    and hands every ``http.response.body`` message to the client as it is
    sent, so a streaming app is read the way a real connection reads it.

    Usage:
        app = create_mock_app()
        async with httpx.AsyncClient(transport=ASGIStreamTransport(app)) as client:
            session = AgentSession(config, http_client=client)
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": request.method,
            "headers": [(key.lower(), value) for key, value in request.headers.raw],
            "scheme": request.url.scheme,
            "path": request.url.path,
            "raw_path": request.url.raw_path.split(b"?")[0],
            "query_string": request.url.query,
            "server": (request.url.host, request.url.port or 80),
            "client": ("127.0.0.1", 0),
            "root_path": "",
        }

        messages: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        disconnected = asyncio.Event()
        request_sent = False

        async def receive() -> dict[str, Any]:
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            await messages.put(message)

        async def run_app() -> None:
            try:
                await self.app(scope, receive, send)
            finally:
                messages.put_nowait(None)

        task = asyncio.create_task(run_app())
        try:
            start = await messages.get()
        except asyncio.CancelledError:
            task.cancel()
            raise
        if start is None:
            await task
            raise RuntimeError("ASGI app returned without sending a response")

        return httpx.Response(
            start["status"],
            headers=start.get("headers", []),
            stream=_ASGIResponseStream(messages, task, disconnected),
            request=request,
        )


class _ASGIResponseStream(httpx.AsyncByteStream):
    def __init__(
        self,
        messages: asyncio.Queue[dict[str, Any] | None],
        task: asyncio.Task[None],
        disconnected: asyncio.Event,
    ) -> None:
        self._messages = messages
        self._task = task
        self._disconnected = disconnected

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            message = await self._messages.get()
            if message is None:
                return
            if message.get("body"):
                yield message["body"]
            if not message.get("more_body", False):
                return

    async def aclose(self) -> None:
        self._disconnected.set()
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
