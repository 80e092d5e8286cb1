"""Tool server reached over HTTP.

Each JSON-RPC request is POSTed to the server's endpoint and the reply comes
back in the HTTP response, either as a JSON body or as a short server-sent
event stream whose ``data:`` lines carry JSON-RPC messages. The session id a
server hands out in the ``Mcp-Session-Id`` header is echoed on every later
request and the session is closed with a DELETE on stop.
"""

import asyncio
import logging
from typing import Any

import httpx

from toolweave_server.errors import (
    ParseError,
    ProtocolError,
    RequestCancelledError,
    ServerUnavailableError,
)
from toolweave_server.protocol import (
    JsonRpcResponse,
    decode_message,
    encode_notification,
    encode_request,
)
from toolweave_server.tool_servers.base import ToolServerHandleBase
from toolweave_server.tool_servers.types import ServerState, ToolServerConfig

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}


def iter_event_data(body: str) -> list[str]:
    """Return the payload of every ``data:`` line of an event stream body."""
    payloads = []
    for line in body.splitlines():
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data and data != "[DONE]":
            payloads.append(data)
    return payloads


class HttpToolServerHandle(ToolServerHandleBase):
    """Supervises a tool server that speaks JSON-RPC over HTTP POST.

    Attributes:
        endpoint: URL every request is POSTed to
        session_id: Session id assigned by the server, if any
    """

    def __init__(
        self,
        config: ToolServerConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)
        if config.endpoint is None:
            raise ValueError(f"Tool server '{config.name}' has no url or port")
        self.endpoint = config.endpoint
        self.session_id: str | None = None

        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._posts: set[asyncio.Task] = set()

    # --- Lifecycle ---

    async def start(self) -> None:
        """Open the HTTP client and perform the initialize handshake.

        A refused connection or an error status leaves the handle DEGRADED.
        """
        if self.state is ServerState.STOPPED:
            return

        logger.info(f"Starting tool server '{self.name}': {self.endpoint}")
        # Budgets are enforced per request
        self._client = httpx.AsyncClient(transport=self._transport, timeout=None)
        self._mark_started()
        await self._handshake()

    async def stop(self) -> None:
        """Cancel in-flight requests, end the session and close the client."""
        if self.state is ServerState.STOPPED:
            return

        logger.info(f"Stopping tool server '{self.name}'")
        self._transition(ServerState.STOPPED)
        self._fail_pending(
            lambda: RequestCancelledError(
                f"Request to tool server '{self.name}' was cancelled: server stopped"
            )
        )

        posts = list(self._posts)
        for task in posts:
            task.cancel()
        await asyncio.gather(*posts, return_exceptions=True)

        if self._client is not None:
            if self.session_id is not None:
                try:
                    await self._client.delete(
                        self.endpoint,
                        headers={SESSION_HEADER: self.session_id},
                        timeout=self.stop_timeout,
                    )
                except httpx.HTTPError as e:
                    logger.debug(f"[{self.name}] closing session failed: {e}")
            await self._client.aclose()

        logger.info(f"Tool server '{self.name}' stopped")

    # --- Request plumbing ---

    def _headers(self) -> dict[str, str]:
        headers = dict(REQUEST_HEADERS)
        if self.session_id is not None:
            headers[SESSION_HEADER] = self.session_id
        return headers

    async def _post(self, payload: bytes, timeout: float | None) -> httpx.Response:
        if self._client is None:
            raise ServerUnavailableError(self.name, "not started")
        response = await self._client.post(
            self.endpoint, content=payload, headers=self._headers(), timeout=timeout
        )
        session_id = response.headers.get(SESSION_HEADER)
        if session_id and self.session_id is None:
            self.session_id = session_id
            logger.debug(f"[{self.name}] session {session_id}")
        return response

    async def _request(
        self, method: str, params: dict[str, Any] | None, timeout: float
    ) -> Any:
        request_id, future = self._new_pending(method)
        task = asyncio.create_task(
            self._exchange(request_id, method, encode_request(request_id, method, params)),
            name=f"tool-server-{self.name}-{request_id}",
        )
        self._posts.add(task)
        task.add_done_callback(self._posts.discard)
        try:
            return await self._await_reply(request_id, method, future, timeout)
        finally:
            if not task.done():
                task.cancel()

    async def _exchange(self, request_id: int, method: str, payload: bytes) -> None:
        try:
            response = await self._post(payload, timeout=None)
        except httpx.HTTPError as e:
            self._degrade(f"request to {self.endpoint} failed: {e}")
            return

        if response.status_code >= 400:
            self._fail_request(
                request_id,
                ProtocolError(
                    {
                        "code": response.status_code,
                        "message": f"HTTP {response.status_code}: {response.text}",
                        "context": f"{self.name}.{method}",
                    }
                ),
            )
            return

        self._read_body(response)
        self._fail_request(
            request_id,
            ParseError(f"Tool server '{self.name}' sent no reply to {method}"),
        )

    def _read_body(self, response: httpx.Response) -> None:
        content_type = response.headers.get("Content-Type", "")
        if "text/event-stream" in content_type:
            messages = iter_event_data(response.text)
        elif response.content.strip():
            messages = [response.text]
        else:
            messages = []

        for raw in messages:
            try:
                message = decode_message(raw)
            except ParseError as e:
                self._on_malformed_line(str(e))
                continue
            self._malformed_lines = 0
            if isinstance(message, JsonRpcResponse):
                self._dispatch(message)
            else:
                logger.debug(f"[{self.name}] ignoring server message {message.method}")

    def _fail_request(self, request_id: int, error: Exception) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None and not pending.future.done():
            pending.future.set_exception(error)

    async def _notify(self, method: str) -> None:
        try:
            response = await self._post(
                encode_notification(method), timeout=self.handshake_timeout
            )
        except httpx.HTTPError as e:
            raise ServerUnavailableError(self.name, str(e)) from e
        if response.status_code >= 400:
            raise ServerUnavailableError(self.name, f"HTTP {response.status_code}")

    def _on_degraded(self) -> None:
        for task in list(self._posts):
            if task is not asyncio.current_task():
                task.cancel()
