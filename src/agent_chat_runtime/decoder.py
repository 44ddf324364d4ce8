"""Event stream decoder.

Turns the raw byte stream of an agent response into classified
:mod:`~agent_chat_runtime.events`.

Two framings are supported:

- ``chunk`` (default): every delivered chunk is one complete JSON document.
  Nothing is buffered across chunk boundaries, so a record split by the
  transport is lost as a decode error on each half.
- ``ndjson``: records are newline-delimited and may span or share chunks.

A record that fails to decode is logged and skipped; the stream keeps going.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from typing import Any

from .config import Framing
from .errors import DecodeError
from .events import AgentEvent, ContentDelta, FinishSignal, ToolCall, ToolCallBatch

logger = logging.getLogger(__name__)

NEWLINE = b"\n"


def parse_record(raw: bytes | str) -> dict[str, Any]:
    """Decode one framed unit into a JSON object.

    Raises:
        DecodeError: If the data is not UTF-8, not JSON, or not an object
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as e:
        raise DecodeError(f"Invalid UTF-8: {e}", raw) from e

    try:
        record = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON: {e}", raw) from e

    if not isinstance(record, dict):
        raise DecodeError(f"Expected a JSON object, got {type(record).__name__}", raw)
    return record


def classify(record: Mapping[str, Any]) -> AgentEvent | None:
    """Classify a decoded record.

    Precedence: non-empty ``content``, then ``tool_calls``, then a
    non-empty ``finish_reason``. Returns None when no field is recognised.

    Raises:
        DecodeError: If ``tool_calls`` is present but not a list of objects
    """
    content = record.get("content")
    if content:
        return ContentDelta(text=content if isinstance(content, str) else str(content))

    tool_calls = record.get("tool_calls")
    if tool_calls is not None:
        return ToolCallBatch(calls=tuple(_parse_tool_call(tc) for tc in _as_list(tool_calls)))

    finish_reason = record.get("finish_reason")
    if finish_reason:
        return FinishSignal(reason=str(finish_reason))

    return None


def _as_list(tool_calls: Any) -> list[Any]:
    if not isinstance(tool_calls, list):
        raise DecodeError(f"tool_calls must be a list, got {type(tool_calls).__name__}")
    return tool_calls


def _parse_tool_call(tool_call: Any) -> ToolCall:
    if not isinstance(tool_call, dict):
        raise DecodeError(f"tool call must be an object, got {type(tool_call).__name__}")

    # OpenAI-style calls nest name/arguments under "function"
    function = tool_call.get("function")
    if "name" not in tool_call and isinstance(function, dict):
        return ToolCall(name=str(function.get("name", "")), arguments=function.get("arguments"))

    return ToolCall(name=str(tool_call.get("name", "")), arguments=tool_call.get("arguments"))


class EventStreamDecoder:
    """Stateful decoder for one response stream.

    ``feed`` and ``flush`` are synchronous and usable on their own;
    ``decode`` drives them from an async byte iterator.

    Attributes:
        decoded: Number of events emitted so far
        dropped: Number of units dropped as decode errors
        ignored: Number of well-formed records with no recognised field
    """

    def __init__(self, framing: Framing | str = Framing.CHUNK) -> None:
        self.framing = Framing(framing)
        self.decoded = 0
        self.dropped = 0
        self.ignored = 0
        self._buffer = b""

    def feed(self, chunk: bytes) -> list[AgentEvent]:
        """Decode a delivered chunk, returning the events it completes."""
        if self.framing is Framing.CHUNK:
            return self._decode_units([chunk])

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(NEWLINE)
        return self._decode_units(lines)

    def flush(self) -> list[AgentEvent]:
        """Decode whatever remains buffered at end of stream."""
        if not self._buffer:
            return []
        remainder, self._buffer = self._buffer, b""
        return self._decode_units([remainder])

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[AgentEvent]:
        """Yield events in arrival order from an async stream of chunks."""
        async for chunk in chunks:
            for event in self.feed(chunk):
                yield event
        for event in self.flush():
            yield event

    def _decode_units(self, units: list[bytes]) -> list[AgentEvent]:
        events: list[AgentEvent] = []
        for unit in units:
            if self.framing is Framing.NDJSON and not unit.strip():
                continue
            try:
                record = parse_record(unit)
                event = classify(record)
            except DecodeError as e:
                e.raw = e.raw or unit
                self.dropped += 1
                logger.warning(f"Dropping undecodable chunk: {e.reason} (data: {e.preview()!r})")
                continue

            logger.debug(f"Received chunk: {record}")
            if event is None:
                self.ignored += 1
                logger.debug(f"Ignoring record with no recognised fields: {sorted(record)}")
                continue

            self.decoded += 1
            events.append(event)
        return events
