"""Agent chat session controller.

Owns the request lifecycle for one chat session:
- At most one request is in flight at a time
- ``send`` while idle starts a turn; ``send`` while running cancels it
- Every turn ends back in IDLE, whether the stream completes, the user
  cancels, or the transport fails

State machine:

    IDLE --send--> RUNNING           request opened
    RUNNING --send--> IDLE           user cancel (no follow-up is queued)
    RUNNING --stream end--> IDLE     natural completion
    RUNNING --transport error--> IDLE

Usage:
    async with AgentSession(ClientConfig(base_url="http://localhost:3000")) as session:
        await session.send("hi")
        await session.wait()
        for entry in session.transcript:
            print(entry)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from .capabilities import CapabilityRegistry
from .config import ClientConfig
from .decoder import EventStreamDecoder
from .errors import TransportError
from .transcript import Transcript

logger = logging.getLogger(__name__)

# Success statuses that never carry a response body
NO_BODY_STATUSES = frozenset({204, 205})


class SessionState(str, Enum):
    """Turn lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"


StateCallback = Callable[[SessionState], None]


@dataclass
class TurnHandle:
    """Cancellation handle for one turn, owned by the session.

    Released exactly once; ``cancel`` only signals a turn that has not
    already been released.
    """

    turn_id: int
    task: asyncio.Task[None] | None = None
    cancelled: bool = False
    released: bool = False

    def cancel(self) -> None:
        """Signal the turn's task to stop at its next suspension point."""
        if self.released:
            return
        self.cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def release(self) -> None:
        self.released = True
        self.task = None


class AgentSession:
    """Client-side controller for a streaming agent chat session.

    Args:
        config: Client configuration (default: from environment)
        registry: Capability registry read on every send (default: new, empty)
        transcript: Transcript that receives entries (default: new, empty)
        http_client: Pre-built httpx client; the session closes it only if
                     it created it
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        registry: CapabilityRegistry | None = None,
        transcript: Transcript | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.transcript = transcript if transcript is not None else Transcript()

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.connect_timeout, read=self.config.read_timeout),
        )

        self._state = SessionState.IDLE
        self._active: TurnHandle | None = None
        self._last_task: asyncio.Task[None] | None = None
        self._turn_ids = itertools.count(1)
        self._state_callbacks: list[StateCallback] = []
        self.turn_count = 0

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Current turn state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """True exactly while a request is outstanding."""
        return self._state == SessionState.RUNNING

    @property
    def active_turn(self) -> TurnHandle | None:
        """Cancellation handle of the running turn, if any."""
        return self._active

    def on_state_change(self, callback: StateCallback) -> None:
        """Register a callback invoked with the new state on each transition."""
        self._state_callbacks.append(callback)

    def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        self._state = state
        for callback in list(self._state_callbacks):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"State callback failed: {e}")

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def build_payload(self, message: str) -> dict[str, Any]:
        """Build the request body for a message.

        Only servers are transmitted; declared apps stay client-side.
        """
        return {
            "userMessage": message,
            "mcpServers": self.registry.snapshot_servers(),
        }

    async def send(self, message: str) -> None:
        """Start a turn with ``message``, or cancel the running turn.

        A send while running is an interrupt: the current request is
        cancelled and ``message`` is discarded.
        """
        if self.is_running:
            self._interrupt()
            return

        self.transcript.add_user_message(message)
        payload = self.build_payload(message)

        handle = TurnHandle(turn_id=next(self._turn_ids))
        self._active = handle
        self.turn_count += 1
        self._set_state(SessionState.RUNNING)

        handle.task = asyncio.create_task(
            self._run_turn(handle, payload),
            name=f"agent-turn-{handle.turn_id}",
        )
        self._last_task = handle.task

    async def cancel(self) -> bool:
        """Cancel the running turn.

        Returns:
            True if a turn was cancelled, False if the session was idle
        """
        if not self.is_running:
            return False
        self._interrupt()
        return True

    async def wait(self) -> None:
        """Wait until the most recent turn has finished."""
        task = self._last_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def aclose(self) -> None:
        """Cancel any running turn and release the HTTP client."""
        if self.is_running:
            self._interrupt()
        await self.wait()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AgentSession:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Turn execution
    # -------------------------------------------------------------------------

    def _interrupt(self) -> None:
        handle = self._active
        if handle is None:
            logger.warning("No active turn to cancel")
            return

        logger.info(f"Cancelling agent turn {handle.turn_id}")
        handle.cancel()
        self._release(handle)

    def _release(self, handle: TurnHandle) -> None:
        # A cancelled turn's task finishes after the next turn may have
        # started, so only the owning turn may clear the session state.
        if handle.released:
            return
        handle.release()
        if self._active is handle:
            self._active = None
            self._set_state(SessionState.IDLE)

    async def _run_turn(self, handle: TurnHandle, payload: dict[str, Any]) -> None:
        try:
            await self._stream_turn(payload)
        except asyncio.CancelledError:
            logger.info(f"Agent turn {handle.turn_id} cancelled")
        except TransportError as e:
            logger.error(f"Agent request failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error in agent turn {handle.turn_id}: {e}")
        finally:
            self._release(handle)

    async def _stream_turn(self, payload: dict[str, Any]) -> None:
        headers = {"Content-Type": "application/json", **self.config.headers}
        decoder = EventStreamDecoder(self.config.framing)

        try:
            async with self._client.stream(
                "POST",
                self.config.url,
                json=payload,
                headers=headers,
            ) as response:
                if not response.is_success:
                    reason = response.reason_phrase or "Request failed"
                    raise TransportError(reason, response.status_code)
                if response.status_code in NO_BODY_STATUSES:
                    raise TransportError("Response has no body", response.status_code)

                async for event in decoder.decode(response.aiter_bytes()):
                    self.transcript.apply(event)
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        logger.debug(
            f"Agent stream ended ({decoder.decoded} events, "
            f"{decoder.dropped} dropped, {decoder.ignored} ignored)"
        )
