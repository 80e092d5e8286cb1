"""Supervision of tool server child processes.

This package spawns tool servers, tracks their lifecycle and multiplexes
concurrent JSON-RPC requests over each server's stdio channel or HTTP endpoint.
"""

from toolweave_server.tool_servers.base import ToolServerHandleBase
from toolweave_server.tool_servers.handle import ToolServerHandle
from toolweave_server.tool_servers.http_handle import HttpToolServerHandle
from toolweave_server.tool_servers.supervisor import ToolServerSupervisor
from toolweave_server.tool_servers.types import (
    STATE_TRANSITIONS,
    ContentItem,
    ResultEnvelope,
    ServerState,
    ToolDescriptor,
    ToolServerConfig,
    ToolServerStatus,
)

__all__ = [
    "STATE_TRANSITIONS",
    "ContentItem",
    "HttpToolServerHandle",
    "ResultEnvelope",
    "ServerState",
    "ToolDescriptor",
    "ToolServerConfig",
    "ToolServerHandle",
    "ToolServerHandleBase",
    "ToolServerStatus",
    "ToolServerSupervisor",
]
