"""Exception taxonomy for the agent chat client.

None of these errors is fatal to a session. They are raised at the point
where the condition is detected and handled inside the session or decoder,
which log them and return the session to idle.
"""

from __future__ import annotations


class AgentChatError(Exception):
    """Base class for all agent chat errors."""

    pass


class TransportError(AgentChatError):
    """The agent endpoint could not deliver a readable response stream.

    Covers non-success status codes, responses without a body and
    connection-level failures.
    """

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"HTTP {status_code}: {reason}")
        else:
            super().__init__(reason)


class DecodeError(AgentChatError):
    """A single chunk (or line) could not be decoded into a JSON record."""

    def __init__(self, reason: str, raw: bytes | str = b"") -> None:
        self.reason = reason
        self.raw = raw
        super().__init__(reason)

    def preview(self, limit: int = 80) -> str:
        """Short printable preview of the offending data for log lines."""
        text = self.raw
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        if len(text) > limit:
            return text[: limit - 3] + "..."
        return text


class CapabilityDeclarationError(AgentChatError):
    """An ``add-tools`` declaration did not match the expected shape."""

    pass


class UnknownActionError(AgentChatError):
    """A host tried to invoke an action that was never registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Action '{name}' is not registered")
