"""Type definitions for tool server supervision.

This module contains the configuration, lifecycle state and result types that
flow between the supervisor, the orchestrator and the HTTP layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ServerState(str, Enum):
    """Lifecycle state of a tool server handle."""

    STARTING = "starting"
    READY = "ready"
    DEGRADED = "degraded"
    STOPPED = "stopped"


# Allowed lifecycle transitions; STOPPED is terminal.
STATE_TRANSITIONS: dict[ServerState, frozenset[ServerState]] = {
    ServerState.STARTING: frozenset(
        {ServerState.READY, ServerState.DEGRADED, ServerState.STOPPED}
    ),
    ServerState.READY: frozenset({ServerState.DEGRADED, ServerState.STOPPED}),
    ServerState.DEGRADED: frozenset({ServerState.DEGRADED, ServerState.STOPPED}),
    ServerState.STOPPED: frozenset(),
}


DEFAULT_HTTP_PATH = "/mcp"


@dataclass(frozen=True)
class ToolServerConfig:
    """Configuration for one tool server.

    A server is reached either by launching ``command`` and talking over its
    stdio pipes, or over HTTP at ``url`` (or ``http://127.0.0.1:<port>/mcp``
    when only ``port`` is given).

    Attributes:
        name: Unique key of the server (e.g. "docs")
        command: Executable to launch (stdio transport)
        args: Arguments passed to the executable
        kind: Free-form label describing the server (e.g. "stdio", "fetch")
        env: Extra environment variables merged over the parent environment
        cwd: Optional working directory for the process
        enabled: Disabled servers are never started
        url: Endpoint of an HTTP tool server
        port: Local port of an HTTP tool server, used when ``url`` is unset
    """

    name: str
    command: str = ""
    args: tuple[str, ...] = ()
    kind: str = "stdio"
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: str | None = None
    enabled: bool = True
    url: str | None = None
    port: int | None = None

    def __post_init__(self) -> None:
        if not (self.command or self.url or self.port):
            raise ValueError(f"Tool server '{self.name}' needs a command, a url or a port")

    @property
    def transport(self) -> str:
        return "http" if self.url or self.port else "stdio"

    @property
    def endpoint(self) -> str | None:
        if self.url:
            return self.url
        if self.port:
            return f"http://127.0.0.1:{self.port}{DEFAULT_HTTP_PATH}"
        return None


@dataclass
class ToolDescriptor:
    """A tool advertised by a server through tools/list."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ToolDescriptor":
        return ToolDescriptor(
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            input_schema=dict(data.get("inputSchema") or data.get("input_schema") or {}),
        )


@dataclass
class ContentItem:
    """One typed item of a tool result ("text", "link" or "json")."""

    type: str
    text: str | None = None
    url: str | None = None
    json: Any = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ContentItem":
        return ContentItem(
            type=str(data.get("type", "text")),
            text=data.get("text"),
            url=data.get("url"),
            json=data.get("json"),
        )

    def to_dict(self) -> dict[str, Any]:
        item: dict[str, Any] = {"type": self.type}
        if self.text is not None:
            item["text"] = self.text
        if self.url is not None:
            item["url"] = self.url
        if self.json is not None:
            item["json"] = self.json
        return item


@dataclass
class ResultEnvelope:
    """The ordered content items returned by a tools/call request.

    The envelope stays opaque until it is passed through the response
    extractor.
    """

    content: list[ContentItem] = field(default_factory=list)
    is_error: bool = False

    @staticmethod
    def from_result(result: Any) -> "ResultEnvelope":
        """Build an envelope from a raw tools/call result object."""
        if not isinstance(result, Mapping):
            return ResultEnvelope()

        raw_content = result.get("content") or []
        if isinstance(raw_content, str):
            raw_content = [{"type": "text", "text": raw_content}]

        items = [
            ContentItem.from_dict(item)
            for item in raw_content
            if isinstance(item, Mapping)
        ]
        return ResultEnvelope(content=items, is_error=bool(result.get("isError")))

    @property
    def text(self) -> str:
        """All text items joined with newlines."""
        return "\n".join(
            item.text for item in self.content if item.type == "text" and item.text
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [item.to_dict() for item in self.content],
            "isError": self.is_error,
        }


@dataclass
class ToolServerStatus:
    """Point-in-time snapshot of a handle, used by the HTTP layer."""

    name: str
    kind: str
    state: ServerState
    last_error: str | None = None
    pending_requests: int = 0
    pid: int | None = None
    server_info: dict[str, Any] = field(default_factory=dict)
    started_at: str | None = None
    transport: str = "stdio"
    endpoint: str | None = None
