"""Transport-independent part of a tool server handle.

A handle tracks one tool server through STARTING -> READY -> DEGRADED ->
STOPPED (see STATE_TRANSITIONS), correlates request ids with pending slots and
performs the initialize handshake. Subclasses supply the transport: a child
process speaking line-delimited JSON-RPC over stdio, or an HTTP endpoint
taking JSON-RPC over POST.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from toolweave_server.errors import (
    ProtocolError,
    RequestTimeoutError,
    ServerUnavailableError,
    ToolweaveError,
)
from toolweave_server.protocol import (
    DEFAULT_CLIENT_INFO,
    PROTOCOL_VERSION,
    JsonRpcResponse,
    classify_error,
)
from toolweave_server.tool_servers.types import (
    STATE_TRANSITIONS,
    ResultEnvelope,
    ServerState,
    ToolDescriptor,
    ToolServerConfig,
    ToolServerStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """An in-flight request awaiting the reply with the same id."""

    method: str
    future: asyncio.Future


class ToolServerHandleBase(ABC):
    """Lifecycle state and request bookkeeping shared by every transport.

    Attributes:
        config: The immutable configuration the server was started with
        state: Current lifecycle state
        last_error: Human-readable reason for the last degradation
        server_info: serverInfo reported by the initialize handshake
        started_at: ISO 8601 time the transport was opened
    """

    def __init__(
        self,
        config: ToolServerConfig,
        *,
        handshake_timeout: float = 15.0,
        request_timeout: float = 30.0,
        stop_timeout: float = 5.0,
        max_malformed_lines: int = 3,
        max_consecutive_timeouts: int = 3,
        client_info: dict[str, str] | None = None,
    ) -> None:
        self.config = config
        self.handshake_timeout = handshake_timeout
        self.request_timeout = request_timeout
        self.stop_timeout = stop_timeout
        self.max_malformed_lines = max_malformed_lines
        self.max_consecutive_timeouts = max_consecutive_timeouts
        self.client_info = client_info or DEFAULT_CLIENT_INFO

        self.state = ServerState.STARTING
        self.last_error: str | None = None
        self.server_info: dict[str, Any] = {}
        self.started_at: str | None = None

        self._request_ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._malformed_lines = 0
        self._consecutive_timeouts = 0

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pid(self) -> int | None:
        return None

    def status(self) -> ToolServerStatus:
        """Return a snapshot of the handle for reporting."""
        return ToolServerStatus(
            name=self.name,
            kind=self.config.kind,
            state=self.state,
            last_error=self.last_error,
            pending_requests=len(self._pending),
            pid=self.pid,
            server_info=dict(self.server_info),
            started_at=self.started_at,
            transport=self.config.transport,
            endpoint=self.config.endpoint,
        )

    # --- Lifecycle ---

    @abstractmethod
    async def start(self) -> None:
        """Open the transport and perform the handshake; never raises."""

    @abstractmethod
    async def stop(self) -> None:
        """Close the transport and fail every pending request."""

    def _mark_started(self) -> None:
        self.started_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    async def _handshake(self) -> None:
        try:
            result = await self._request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "clientInfo": self.client_info,
                },
                timeout=self.handshake_timeout,
            )
        except RequestTimeoutError:
            self._degrade(f"handshake timed out after {self.handshake_timeout}s")
            return
        except ToolweaveError as e:
            self._degrade(f"handshake failed: {e}")
            return

        # stop() or a crash may have raced the handshake
        if self.state is not ServerState.STARTING:
            return

        if isinstance(result, dict):
            self.server_info = dict(result.get("serverInfo") or {})

        try:
            await self._notify("notifications/initialized")
        except (OSError, ToolweaveError) as e:
            self._degrade(f"initialized notification failed: {e}")
            return

        self._transition(ServerState.READY)
        logger.info(
            f"Tool server '{self.name}' ready "
            f"(transport={self.config.transport}, "
            f"server={self.server_info.get('name', 'unknown')})"
        )

    # --- Operations ---

    async def list_tools(self) -> list[ToolDescriptor]:
        """Issue tools/list and return the advertised tools.

        Raises:
            ServerUnavailableError: If the handle is not READY
        """
        self._ensure_ready()
        result = await self._request("tools/list", None, timeout=self.request_timeout)
        tools = result.get("tools", []) if isinstance(result, dict) else []
        return [ToolDescriptor.from_dict(tool) for tool in tools if isinstance(tool, dict)]

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ResultEnvelope:
        """Issue tools/call and wait for the reply with the matching id.

        Args:
            tool_name: Name of the tool on this server
            arguments: Structured tool arguments
            timeout: Per-call budget in seconds (defaults to request_timeout)

        Returns:
            ResultEnvelope: The raw content items of the result

        Raises:
            ServerUnavailableError: If the handle is not READY or goes down
            RequestTimeoutError: If no reply arrives in time
            ProtocolError: If the server replies with an error object
        """
        self._ensure_ready()
        result = await self._request(
            "tools/call",
            {"name": tool_name, "arguments": arguments or {}},
            timeout=timeout if timeout is not None else self.request_timeout,
        )
        return ResultEnvelope.from_result(result)

    # --- Transport hooks ---

    @abstractmethod
    async def _request(
        self, method: str, params: dict[str, Any] | None, timeout: float
    ) -> Any:
        """Send one request and return its result."""

    @abstractmethod
    async def _notify(self, method: str) -> None:
        """Send one notification."""

    def _on_degraded(self) -> None:
        """Release transport resources after a degradation."""

    # --- Request bookkeeping ---

    def _ensure_ready(self) -> None:
        if self.state is ServerState.READY:
            return
        if self.state is ServerState.STARTING:
            raise ServerUnavailableError(self.name, "still starting")
        if self.state is ServerState.STOPPED:
            raise ServerUnavailableError(self.name, "stopped")
        raise ServerUnavailableError(self.name, self.last_error)

    def _new_pending(self, method: str) -> tuple[int, asyncio.Future]:
        request_id = next(self._request_ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(method=method, future=future)
        logger.debug(f"[{self.name}] -> #{request_id} {method}")
        return request_id, future

    async def _await_reply(
        self, request_id: int, method: str, future: asyncio.Future, timeout: float
    ) -> Any:
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            self._record_timeout()
            raise RequestTimeoutError(
                f"Tool server '{self.name}' did not answer {method} "
                f"(request #{request_id}) within {timeout}s"
            ) from None
        finally:
            self._pending.pop(request_id, None)

    def _record_timeout(self) -> None:
        self._consecutive_timeouts += 1
        if (
            self.state is ServerState.READY
            and self._consecutive_timeouts >= self.max_consecutive_timeouts
        ):
            self._degrade(f"{self._consecutive_timeouts} consecutive requests timed out")

    def _on_malformed_line(self, reason: str) -> None:
        self._malformed_lines += 1
        logger.warning(
            f"[{self.name}] malformed output ({self._malformed_lines}/"
            f"{self.max_malformed_lines}): {reason}"
        )
        if self._malformed_lines >= self.max_malformed_lines:
            self._degrade(f"{self._malformed_lines} consecutive malformed output lines")

    def _dispatch(self, response: JsonRpcResponse) -> None:
        pending = self._pending.pop(response.id, None)
        if pending is None:
            logger.debug(f"[{self.name}] discarding reply for unknown id {response.id!r}")
            return

        self._consecutive_timeouts = 0
        if pending.future.done():
            return

        if response.is_error:
            error = classify_error(response.error, context=f"{self.name}.{pending.method}")
            logger.debug(f"[{self.name}] <- #{response.id} error {error.get('code')}")
            pending.future.set_exception(ProtocolError(error))
        else:
            logger.debug(f"[{self.name}] <- #{response.id} ok")
            pending.future.set_result(response.result)

    def _fail_pending(self, make_error: Callable[[], Exception]) -> None:
        pending, self._pending = self._pending, {}
        for request in pending.values():
            if not request.future.done():
                request.future.set_exception(make_error())

    # --- State machine ---

    def _transition(self, new_state: ServerState) -> None:
        if new_state not in STATE_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid transition for tool server '{self.name}': "
                f"{self.state.value} -> {new_state.value}"
            )
        logger.debug(f"[{self.name}] state {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _degrade(self, reason: str) -> None:
        if self.state in (ServerState.DEGRADED, ServerState.STOPPED):
            return

        self.last_error = reason
        self._transition(ServerState.DEGRADED)
        logger.error(f"Tool server '{self.name}' degraded: {reason}")
        self._fail_pending(lambda: ServerUnavailableError(self.name, reason))
        self._on_degraded()
