"""Pydantic models for tool server endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from toolweave_server.tool_servers import ToolDescriptor, ToolServerStatus


class ToolServerStatusResponse(BaseModel):
    """Snapshot of one tool server handle."""

    name: str = Field(description="Tool server name")
    kind: str = Field(description="Free-form server label")
    state: str = Field(description="starting, ready, degraded or stopped")
    last_error: str | None = Field(default=None, description="Reason for the last degradation")
    pending_requests: int = Field(default=0, description="Requests awaiting a reply")
    pid: int | None = Field(default=None, description="Process id")
    server_info: dict[str, Any] = Field(default_factory=dict, description="serverInfo from the handshake")
    started_at: str | None = Field(default=None, description="ISO 8601 start time")
    transport: str = Field(default="stdio", description="stdio or http")
    endpoint: str | None = Field(default=None, description="URL of an HTTP tool server")

    @staticmethod
    def from_status(status: ToolServerStatus) -> "ToolServerStatusResponse":
        return ToolServerStatusResponse(
            name=status.name,
            kind=status.kind,
            state=status.state.value,
            last_error=status.last_error,
            pending_requests=status.pending_requests,
            pid=status.pid,
            server_info=status.server_info,
            started_at=status.started_at,
            transport=status.transport,
            endpoint=status.endpoint,
        )


class ToolServerListResponse(BaseModel):
    servers: list[ToolServerStatusResponse] = Field(default_factory=list)


class ToolDescriptorResponse(BaseModel):
    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def from_descriptor(descriptor: ToolDescriptor) -> "ToolDescriptorResponse":
        return ToolDescriptorResponse(
            name=descriptor.name,
            description=descriptor.description,
            input_schema=descriptor.input_schema,
        )


class ToolListResponse(BaseModel):
    server: str
    tools: list[ToolDescriptorResponse] = Field(default_factory=list)


class ToolCallRequest(BaseModel):
    """Request body for POST /api/v1/tool-servers/{name}/tools/{tool}/call."""

    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    timeout: float | None = Field(
        default=None, gt=0, description="Per-call timeout in seconds"
    )


class ToolCallResponse(BaseModel):
    """Raw result envelope plus the extracted payload, if one was found."""

    server: str
    tool: str
    result: dict[str, Any] = Field(description="Raw content items and isError flag")
    data: Any = Field(default=None, description="Extracted structured payload")
    extraction_error: str | None = Field(
        default=None, description="Why no structured payload could be extracted"
    )
