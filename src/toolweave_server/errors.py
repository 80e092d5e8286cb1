"""Exception hierarchy for toolweave-server.

Every error raised by the tool-invocation subsystem derives from
ToolweaveError so that routers and the orchestrator can catch the whole
family in one place while still distinguishing the individual kinds.
"""

from typing import Any, Mapping


class ToolweaveError(Exception):
    """Base class for all toolweave-server errors."""


class ParseError(ToolweaveError):
    """Raised when a line or a tool result does not contain the expected JSON.

    Attributes:
        text: The original text that failed to parse, kept for diagnostics.
    """

    def __init__(self, message: str, text: str | None = None) -> None:
        super().__init__(message)
        self.text = text


class ProtocolError(ToolweaveError):
    """A classified error returned by a tool server.

    Wraps the ``{code, message, context}`` mapping produced by
    ``classify_error`` so callers can inspect the code without string parsing.
    """

    def __init__(self, error: Mapping[str, Any]) -> None:
        self.error = error
        self.code: int = int(error.get("code", 500))
        self.message: str = str(error.get("message", "An unknown error occurred"))
        self.context: str | None = error.get("context")
        super().__init__(f"[{self.code}] {self.message}")


class ProcessError(ToolweaveError):
    """Spawn failure, crash or unexpected exit of a tool server process."""


class ServerUnavailableError(ProcessError):
    """Raised when a request targets a handle that is not ready."""

    def __init__(self, name: str, reason: str | None = None) -> None:
        self.name = name
        self.reason = reason or "not ready"
        super().__init__(f"Tool server '{name}': server unavailable ({self.reason})")


class RequestCancelledError(ToolweaveError):
    """Raised for pending requests drained by an explicit stop."""


class RequestTimeoutError(ToolweaveError, TimeoutError):
    """Raised when no response arrives within the request budget."""


class ReadinessError(ToolweaveError):
    """Raised when an LLM provider is used while it is not ready."""


class LLMRequestError(ToolweaveError):
    """Raised when the LLM backend call itself fails."""


class ToolServerNotFoundError(ToolweaveError, LookupError):
    """Raised when no handle exists for the requested tool server name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool server '{name}' not found")
