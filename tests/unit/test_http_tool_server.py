"""Unit tests for tool servers reached over HTTP.

The server side is an in-process JSON-RPC responder mounted on
httpx.MockTransport, so no sockets are opened.
"""

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from toolweave_server.errors import (
    ParseError,
    ProtocolError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerUnavailableError,
)
from toolweave_server.tool_servers import (
    HttpToolServerHandle,
    ServerState,
    ToolServerConfig,
)
from toolweave_server.tool_servers.http_handle import SESSION_HEADER, iter_event_data

ENDPOINT = "http://tools.test/mcp"


class FakeHttpToolServer:
    """Answers JSON-RPC POSTs the way a streamable HTTP tool server does."""

    def __init__(self, session_id: str = "session-1", stream: bool = False) -> None:
        self.session_id = session_id
        self.stream = stream
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200)

        message = json.loads(request.content)
        if "id" not in message:
            return httpx.Response(202)

        request_id = message["id"]
        method = message["method"]
        params = message.get("params") or {}

        if method == "initialize":
            result = {
                "protocolVersion": params["protocolVersion"],
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "fake-http", "version": "1.0"},
            }
        elif method == "tools/list":
            result = {
                "tools": [
                    {
                        "name": "echo",
                        "description": "Echo the arguments back",
                        "inputSchema": {"type": "object"},
                    }
                ]
            }
        elif params.get("name") == "echo":
            result = {"content": [{"type": "text", "text": json.dumps(params["arguments"])}]}
        elif params.get("name") == "missing":
            return self._reply(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": 404, "message": "Resource not found"},
                }
            )
        elif params.get("name") == "broken":
            return httpx.Response(500, text="internal failure")
        elif params.get("name") == "garbled":
            return httpx.Response(200, text="this is not json")
        elif params.get("name") == "silent":
            await asyncio.sleep(3600)
            raise AssertionError("unreachable")
        else:
            result = {"content": [], "isError": True}

        return self._reply({"jsonrpc": "2.0", "id": request_id, "result": result})

    def _reply(self, reply: dict) -> httpx.Response:
        headers = {SESSION_HEADER: self.session_id}
        if self.stream:
            headers["Content-Type"] = "text/event-stream"
            return httpx.Response(
                200, headers=headers, text=f"event: message\ndata: {json.dumps(reply)}\n\n"
            )
        return httpx.Response(200, headers=headers, json=reply)


def http_config(**kwargs) -> ToolServerConfig:
    return ToolServerConfig(name="remote", kind="http", url=ENDPOINT, **kwargs)


@pytest.fixture
def fake_server():
    return FakeHttpToolServer()


@pytest_asyncio.fixture
async def http_handle(fake_server):
    """Create a READY handle talking to the fake server, stopped afterwards."""
    handle = HttpToolServerHandle(
        http_config(),
        transport=httpx.MockTransport(fake_server),
        request_timeout=2.0,
        stop_timeout=1.0,
    )
    await handle.start()
    yield handle
    await handle.stop()


class TestHandshake:
    """Tests for opening an HTTP tool server."""

    @pytest.mark.asyncio
    async def test_handshake_makes_handle_ready(self, http_handle, fake_server):
        """Test that initialize over POST yields a READY handle."""
        assert http_handle.state is ServerState.READY
        assert http_handle.server_info == {"name": "fake-http", "version": "1.0"}
        assert http_handle.started_at.endswith("Z")

        initialize, initialized = fake_server.requests[:2]
        assert initialize.method == "POST"
        assert str(initialize.url) == ENDPOINT
        assert json.loads(initialize.content)["method"] == "initialize"
        assert json.loads(initialized.content)["method"] == "notifications/initialized"

    @pytest.mark.asyncio
    async def test_requests_accept_json_and_event_streams(self, http_handle, fake_server):
        """Test the content negotiation headers sent with every POST."""
        for request in fake_server.requests:
            assert request.headers["content-type"] == "application/json"
            assert request.headers["accept"] == "application/json, text/event-stream"

    @pytest.mark.asyncio
    async def test_session_id_is_echoed_after_initialize(self, http_handle, fake_server):
        """Test that the session id handed out on initialize is sent back."""
        await http_handle.list_tools()

        assert http_handle.session_id == "session-1"
        assert SESSION_HEADER not in fake_server.requests[0].headers
        for request in fake_server.requests[1:]:
            assert request.headers[SESSION_HEADER] == "session-1"

    @pytest.mark.asyncio
    async def test_refused_connection_degrades_handle(self):
        """Test that an unreachable endpoint leaves the handle DEGRADED."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        handle = HttpToolServerHandle(http_config(), transport=httpx.MockTransport(refuse))
        try:
            await handle.start()

            assert handle.state is ServerState.DEGRADED
            assert "Connection refused" in handle.last_error
            assert handle.pending_count == 0
            with pytest.raises(ServerUnavailableError, match="server unavailable"):
                await handle.list_tools()
        finally:
            await handle.stop()

    @pytest.mark.asyncio
    async def test_error_status_on_initialize_degrades_handle(self):
        """Test that a non-2xx answer to initialize fails the handshake."""

        def reject(request: httpx.Request) -> httpx.Response:
            return httpx.Response(406, text="Not Acceptable")

        handle = HttpToolServerHandle(http_config(), transport=httpx.MockTransport(reject))
        try:
            await handle.start()

            assert handle.state is ServerState.DEGRADED
            assert "handshake failed" in handle.last_error
            assert "406" in handle.last_error
        finally:
            await handle.stop()


class TestRequests:
    """Tests for tools/list and tools/call over HTTP."""

    @pytest.mark.asyncio
    async def test_list_tools(self, http_handle):
        """Test that tools/list returns the advertised descriptors."""
        tools = await http_handle.list_tools()

        assert [tool.name for tool in tools] == ["echo"]
        assert tools[0].input_schema == {"type": "object"}

    @pytest.mark.asyncio
    async def test_call_tool_with_json_reply(self, http_handle):
        """Test that a JSON body reply becomes a result envelope."""
        envelope = await http_handle.call_tool("echo", {"query": "docs"})

        assert json.loads(envelope.text) == {"query": "docs"}
        assert http_handle.pending_count == 0

    @pytest.mark.asyncio
    async def test_call_tool_with_event_stream_reply(self):
        """Test that a reply delivered as a server-sent event is read."""
        server = FakeHttpToolServer(stream=True)
        handle = HttpToolServerHandle(http_config(), transport=httpx.MockTransport(server))
        try:
            await handle.start()
            envelope = await handle.call_tool("echo", {"n": 1})

            assert handle.state is ServerState.READY
            assert json.loads(envelope.text) == {"n": 1}
        finally:
            await handle.stop()

    @pytest.mark.asyncio
    async def test_concurrent_calls(self, http_handle):
        """Test that several calls can be in flight at once."""
        envelopes = await asyncio.gather(
            *(http_handle.call_tool("echo", {"i": i}) for i in range(10))
        )

        assert [json.loads(e.text)["i"] for e in envelopes] == list(range(10))

    @pytest.mark.asyncio
    async def test_error_reply_raises_protocol_error(self, http_handle):
        """Test that a JSON-RPC error object surfaces as a ProtocolError."""
        with pytest.raises(ProtocolError) as exc_info:
            await http_handle.call_tool("missing", {})

        assert exc_info.value.code == 404
        assert http_handle.state is ServerState.READY

    @pytest.mark.asyncio
    async def test_error_status_raises_protocol_error(self, http_handle):
        """Test that a 5xx answer fails only that call."""
        with pytest.raises(ProtocolError) as exc_info:
            await http_handle.call_tool("broken", {})

        assert exc_info.value.code == 500
        assert "internal failure" in exc_info.value.message
        assert http_handle.state is ServerState.READY
        assert http_handle.pending_count == 0

    @pytest.mark.asyncio
    async def test_unparseable_body_raises_parse_error(self, http_handle):
        """Test that a body that is not JSON-RPC fails the call."""
        with pytest.raises(ParseError, match="no reply"):
            await http_handle.call_tool("garbled", {})

        assert http_handle.state is ServerState.READY

    @pytest.mark.asyncio
    async def test_timeout_keeps_handle_ready(self, http_handle):
        """Test that an unanswered call times out without degrading."""
        with pytest.raises(RequestTimeoutError):
            await http_handle.call_tool("silent", {}, timeout=0.2)

        assert http_handle.state is ServerState.READY
        assert http_handle.pending_count == 0


class TestStop:
    """Tests for stopping an HTTP tool server."""

    @pytest.mark.asyncio
    async def test_stop_cancels_in_flight_calls(self, http_handle):
        """Test that a call awaiting its reply is cancelled by stop."""
        call = asyncio.create_task(http_handle.call_tool("silent", {}))
        await asyncio.sleep(0.05)

        await http_handle.stop()

        with pytest.raises(RequestCancelledError):
            await call
        assert http_handle.pending_count == 0
        assert http_handle.state is ServerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_ends_the_session(self, http_handle, fake_server):
        """Test that stop sends DELETE with the session id."""
        await http_handle.stop()

        last = fake_server.requests[-1]
        assert last.method == "DELETE"
        assert last.headers[SESSION_HEADER] == "session-1"

    @pytest.mark.asyncio
    async def test_calls_after_stop_are_unavailable(self, http_handle):
        """Test that a stopped handle refuses requests."""
        await http_handle.stop()

        with pytest.raises(ServerUnavailableError, match="server unavailable"):
            await http_handle.call_tool("echo", {})

    @pytest.mark.asyncio
    async def test_stop_before_start_opens_nothing(self, fake_server):
        """Test that a handle stopped before start never contacts the server."""
        handle = HttpToolServerHandle(http_config(), transport=httpx.MockTransport(fake_server))

        await handle.stop()
        await handle.start()

        assert handle.state is ServerState.STOPPED
        assert fake_server.requests == []


class TestStatus:
    """Tests for the configuration and status of HTTP tool servers."""

    @pytest.mark.asyncio
    async def test_status_reports_transport_and_endpoint(self, http_handle):
        """Test the status snapshot of an HTTP handle."""
        status = http_handle.status()

        assert status.transport == "http"
        assert status.endpoint == ENDPOINT
        assert status.pid is None
        assert status.state is ServerState.READY

    def test_port_only_config_targets_localhost(self):
        """Test that a bare port expands to a local endpoint."""
        config = ToolServerConfig(name="local", port=8931)

        assert config.transport == "http"
        assert config.endpoint == "http://127.0.0.1:8931/mcp"

    def test_command_config_uses_stdio(self):
        """Test that command configs keep the stdio transport."""
        config = ToolServerConfig(name="proc", command="tool-server")

        assert config.transport == "stdio"
        assert config.endpoint is None

    def test_config_without_target_is_rejected(self):
        """Test that a config needs a command, a url or a port."""
        with pytest.raises(ValueError, match="needs a command, a url or a port"):
            ToolServerConfig(name="nowhere")

    def test_event_stream_data_lines(self):
        """Test extraction of data payloads from an event stream body."""
        body = 'event: message\ndata: {"a": 1}\n\n: keep-alive\ndata: [DONE]\ndata:{"b": 2}\n'

        assert iter_event_data(body) == ['{"a": 1}', '{"b": 2}']
