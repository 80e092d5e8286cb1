"""Tool server API endpoints.

This module exposes the supervisor: handle snapshots, tool listing, direct
tool calls and restart/stop of individual servers.
"""

import logging

from fastapi import APIRouter, Depends, Request

from toolweave_server.dependencies import get_supervisor
from toolweave_server.errors import ParseError, ToolweaveError
from toolweave_server.models.tool_servers import (
    ToolCallRequest,
    ToolCallResponse,
    ToolDescriptorResponse,
    ToolListResponse,
    ToolServerListResponse,
    ToolServerStatusResponse,
)
from toolweave_server.routers.errors import api_error, http_error_for
from toolweave_server.services import extract
from toolweave_server.tool_servers import ToolServerSupervisor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tool-servers", tags=["tool-servers"])


@router.get("", response_model=ToolServerListResponse)
async def list_tool_servers(
    supervisor: ToolServerSupervisor = Depends(get_supervisor),
) -> ToolServerListResponse:
    """List the status of every known tool server."""
    return ToolServerListResponse(
        servers=[ToolServerStatusResponse.from_status(s) for s in supervisor.statuses()]
    )


@router.get("/{name}", response_model=ToolServerStatusResponse)
async def get_tool_server(
    name: str,
    supervisor: ToolServerSupervisor = Depends(get_supervisor),
) -> ToolServerStatusResponse:
    try:
        handle = supervisor.get_handle(name)
    except ToolweaveError as e:
        raise http_error_for(e) from e
    return ToolServerStatusResponse.from_status(handle.status())


@router.get("/{name}/tools", response_model=ToolListResponse)
async def list_tools(
    name: str,
    supervisor: ToolServerSupervisor = Depends(get_supervisor),
) -> ToolListResponse:
    """Issue tools/list against a tool server.

    Raises:
        HTTPException: 404 unknown server, 503 server not ready, 504 timeout
    """
    try:
        tools = await supervisor.list_tools(name)
    except ToolweaveError as e:
        raise http_error_for(e) from e
    return ToolListResponse(
        server=name, tools=[ToolDescriptorResponse.from_descriptor(t) for t in tools]
    )


@router.post("/{name}/tools/{tool}/call", response_model=ToolCallResponse)
async def call_tool(
    name: str,
    tool: str,
    request_body: ToolCallRequest,
    supervisor: ToolServerSupervisor = Depends(get_supervisor),
) -> ToolCallResponse:
    """Call a tool directly and return the raw envelope and extracted payload.

    Raises:
        HTTPException: 404 unknown server, 503 server not ready, 504 timeout,
            502 if the tool server replied with an error
    """
    logger.info(f"Direct tool call {name}.{tool}")
    try:
        envelope = await supervisor.call_tool(
            name, tool, request_body.arguments, timeout=request_body.timeout
        )
    except ToolweaveError as e:
        raise http_error_for(e) from e

    response = ToolCallResponse(server=name, tool=tool, result=envelope.to_dict())
    try:
        response.data = extract(envelope)
    except ParseError as e:
        response.extraction_error = str(e)
    return response


@router.post("/{name}/restart", response_model=ToolServerStatusResponse)
async def restart_tool_server(
    name: str,
    request: Request,
    supervisor: ToolServerSupervisor = Depends(get_supervisor),
) -> ToolServerStatusResponse:
    """Restart a tool server with its configured settings."""
    settings = request.app.state.settings
    config = settings.tool_server_config(name)
    if config is None:
        raise api_error(
            404, "tool_server_not_found", f"Tool server '{name}' not found", {"name": name}
        )
    if not config.enabled:
        raise api_error(
            409, "tool_server_disabled", f"Tool server '{name}' is disabled", {"name": name}
        )

    handle = await supervisor.restart(config)
    return ToolServerStatusResponse.from_status(handle.status())


@router.post("/{name}/stop", response_model=ToolServerStatusResponse)
async def stop_tool_server(
    name: str,
    supervisor: ToolServerSupervisor = Depends(get_supervisor),
) -> ToolServerStatusResponse:
    try:
        await supervisor.stop(name)
        handle = supervisor.get_handle(name)
    except ToolweaveError as e:
        raise http_error_for(e) from e
    return ToolServerStatusResponse.from_status(handle.status())
