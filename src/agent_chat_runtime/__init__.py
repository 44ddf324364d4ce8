"""Agent Chat Runtime - streaming agent chat client with runtime tool registration.

Components:
- AgentSession: single-flight request controller with cancellation
- EventStreamDecoder: byte stream to classified agent events
- Transcript: append-only message log
- CapabilityRegistry: MCP servers and Pulse apps declared at runtime
- ActionRegistry: host-invokable actions, including ``add-tools``
"""

from .capabilities import CapabilityRegistry, CapabilityUpdate, McpServerConfig, PulseAppDescriptor
from .config import ClientConfig, Framing
from .decoder import EventStreamDecoder, classify, parse_record
from .errors import (
    AgentChatError,
    CapabilityDeclarationError,
    DecodeError,
    TransportError,
    UnknownActionError,
)
from .events import AgentEvent, AgentEventType, ContentDelta, FinishSignal, ToolCall, ToolCallBatch
from .host import (
    ADD_TOOLS_ACTION,
    ActionDescriptor,
    ActionParameter,
    ActionRegistry,
    LoadingSignal,
    mark_view_ready,
    register_add_tools,
)
from .session import AgentSession, SessionState, TurnHandle
from .transcript import Speaker, Transcript, TranscriptEntry

__version__ = "0.1.0"

__all__ = [
    # Session
    "AgentSession",
    "SessionState",
    "TurnHandle",
    # Decoding
    "EventStreamDecoder",
    "classify",
    "parse_record",
    # Events
    "AgentEvent",
    "AgentEventType",
    "ContentDelta",
    "ToolCall",
    "ToolCallBatch",
    "FinishSignal",
    # Transcript
    "Transcript",
    "TranscriptEntry",
    "Speaker",
    # Capabilities
    "CapabilityRegistry",
    "CapabilityUpdate",
    "McpServerConfig",
    "PulseAppDescriptor",
    # Host boundary
    "ActionRegistry",
    "ActionDescriptor",
    "ActionParameter",
    "ADD_TOOLS_ACTION",
    "register_add_tools",
    "LoadingSignal",
    "mark_view_ready",
    # Config
    "ClientConfig",
    "Framing",
    # Errors
    "AgentChatError",
    "TransportError",
    "DecodeError",
    "CapabilityDeclarationError",
    "UnknownActionError",
]
