"""Agent events decoded from the response stream.

The backend streams one JSON record per event. Each record is classified
into exactly one of three kinds:

    {"content": "Hello"}                      -> ContentDelta
    {"tool_calls": [{"name": "lookup"}]}      -> ToolCallBatch
    {"finish_reason": "stop"}                 -> FinishSignal

Records that match none of these are dropped by the decoder.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class AgentEventType(str, Enum):
    """All event kinds produced by the decoder."""

    CONTENT_DELTA = "content.delta"
    TOOL_CALL_BATCH = "tool_call.batch"
    FINISH = "finish"


class ToolCall(BaseModel):
    """A single tool invocation announced by the agent.

    Arguments are carried through untouched.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: Any = None


class ContentDelta(BaseModel):
    """A piece of agent text."""

    model_config = ConfigDict(frozen=True)

    type: Literal[AgentEventType.CONTENT_DELTA] = AgentEventType.CONTENT_DELTA
    text: str


class ToolCallBatch(BaseModel):
    """One or more tool calls announced in a single record."""

    model_config = ConfigDict(frozen=True)

    type: Literal[AgentEventType.TOOL_CALL_BATCH] = AgentEventType.TOOL_CALL_BATCH
    calls: tuple[ToolCall, ...] = ()

    @property
    def names(self) -> list[str]:
        """Tool names in call order."""
        return [call.name for call in self.calls]

    def display_names(self) -> str:
        """Comma-joined tool names for display."""
        return ", ".join(self.names)


class FinishSignal(BaseModel):
    """The agent finished its response."""

    model_config = ConfigDict(frozen=True)

    type: Literal[AgentEventType.FINISH] = AgentEventType.FINISH
    reason: str


AgentEvent = Annotated[ContentDelta | ToolCallBatch | FinishSignal, Field(discriminator="type")]
