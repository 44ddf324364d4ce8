"""Append-only chat transcript.

Folds user messages and decoded agent events into an ordered log of
immutable entries. Subscribers are notified of each entry as it is
appended so a front-end can render incrementally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .events import AgentEvent, ContentDelta, FinishSignal, ToolCallBatch

logger = logging.getLogger(__name__)


class Speaker(str, Enum):
    """Who produced a transcript entry."""

    USER = "User"
    AGENT = "Agent"


class TranscriptEntry(BaseModel):
    """One line of the transcript. Immutable once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    speaker: Speaker = Field(alias="from")
    content: str

    def __str__(self) -> str:
        return f"{self.speaker.value}: {self.content}"


EntryCallback = Callable[[TranscriptEntry], None]


def render_event(event: AgentEvent) -> str:
    """Human-readable text for a decoded agent event."""
    if isinstance(event, ContentDelta):
        return event.text
    if isinstance(event, ToolCallBatch):
        return f"Calling tools: {event.display_names()}"
    if isinstance(event, FinishSignal):
        return f"Finished with reason: {event.reason}"
    raise TypeError(f"Unsupported event: {event!r}")


class Transcript:
    """Ordered, append-only log of :class:`TranscriptEntry`."""

    def __init__(self) -> None:
        self._entries: list[TranscriptEntry] = []
        self._subscribers: list[EntryCallback] = []

    def add_user_message(self, message: str) -> TranscriptEntry:
        """Append a user entry."""
        return self._append(TranscriptEntry(speaker=Speaker.USER, content=message))

    def apply(self, event: AgentEvent) -> TranscriptEntry:
        """Append the agent entry for a decoded event."""
        return self._append(TranscriptEntry(speaker=Speaker.AGENT, content=render_event(event)))

    def subscribe(self, callback: EntryCallback) -> Callable[[], None]:
        """Register a callback for new entries.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def entries(self) -> Sequence[TranscriptEntry]:
        """Read-only view of the entries in append order."""
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(tuple(self._entries))

    def _append(self, entry: TranscriptEntry) -> TranscriptEntry:
        self._entries.append(entry)
        for callback in list(self._subscribers):
            try:
                callback(entry)
            except Exception as e:
                logger.error(f"Transcript subscriber failed: {e}")
        return entry
