"""Supervisor owning every tool server handle.

The supervisor is created by the application lifespan and injected into
routers and the orchestrator. It keeps one handle per configured name and
serialises lifecycle operations per name; request traffic never takes the
lifecycle lock.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from toolweave_server.errors import ToolServerNotFoundError
from toolweave_server.tool_servers.base import ToolServerHandleBase
from toolweave_server.tool_servers.handle import DEFAULT_MAX_LINE_BYTES, ToolServerHandle
from toolweave_server.tool_servers.http_handle import HttpToolServerHandle
from toolweave_server.tool_servers.types import (
    ResultEnvelope,
    ServerState,
    ToolDescriptor,
    ToolServerConfig,
    ToolServerStatus,
)

logger = logging.getLogger(__name__)


class ToolServerSupervisor:
    """Starts, stops and routes requests to tool servers.

    Configs with a ``url`` or ``port`` get an HTTP handle; the rest are
    launched as child processes.
    """

    def __init__(
        self,
        *,
        handshake_timeout: float = 15.0,
        request_timeout: float = 30.0,
        stop_timeout: float = 5.0,
        max_malformed_lines: int = 3,
        max_consecutive_timeouts: int = 3,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ) -> None:
        self.handshake_timeout = handshake_timeout
        self.request_timeout = request_timeout
        self.stop_timeout = stop_timeout
        self.max_malformed_lines = max_malformed_lines
        self.max_consecutive_timeouts = max_consecutive_timeouts
        self.max_line_bytes = max_line_bytes

        self._handles: dict[str, ToolServerHandleBase] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    def _new_handle(self, config: ToolServerConfig) -> ToolServerHandleBase:
        options = dict(
            handshake_timeout=self.handshake_timeout,
            request_timeout=self.request_timeout,
            stop_timeout=self.stop_timeout,
            max_malformed_lines=self.max_malformed_lines,
            max_consecutive_timeouts=self.max_consecutive_timeouts,
        )
        if config.transport == "http":
            return HttpToolServerHandle(config, **options)
        return ToolServerHandle(config, max_line_bytes=self.max_line_bytes, **options)

    # --- Lifecycle ---

    async def start(self, config: ToolServerConfig) -> ToolServerHandleBase:
        """Start a tool server, or return the running one with the same config.

        Args:
            config: Configuration of the server to start

        Returns:
            ToolServerHandleBase: The handle, READY on success or DEGRADED when
            the spawn or handshake failed

        Raises:
            ValueError: If the config is disabled, or a READY server with the
                same name was started with a different config
        """
        if not config.enabled:
            raise ValueError(f"Tool server '{config.name}' is disabled")

        async with self._lock_for(config.name):
            existing = self._handles.get(config.name)
            if existing is not None:
                if existing.state is ServerState.READY:
                    if existing.config != config:
                        raise ValueError(
                            f"Tool server '{config.name}' is running with a different "
                            "configuration; use restart"
                        )
                    return existing
                if existing.state is ServerState.STARTING:
                    return existing
                await existing.stop()

            return await self._spawn(config)

    async def _spawn(self, config: ToolServerConfig) -> ToolServerHandleBase:
        handle = self._new_handle(config)
        self._handles[config.name] = handle
        await handle.start()
        if handle.state is ServerState.DEGRADED:
            logger.warning(
                f"Tool server '{config.name}' failed to start: {handle.last_error}"
            )
        return handle

    async def start_all(self, configs: Iterable[ToolServerConfig]) -> list[ToolServerHandleBase]:
        """Start every enabled config concurrently."""
        configs = list(configs)
        enabled = [config for config in configs if config.enabled]
        skipped = [config.name for config in configs if not config.enabled]
        if skipped:
            logger.info(f"Skipping disabled tool servers: {skipped}")
        if not enabled:
            return []
        logger.info(f"Starting {len(enabled)} tool server(s)")
        return list(await asyncio.gather(*(self.start(config) for config in enabled)))

    async def restart(self, config: ToolServerConfig) -> ToolServerHandleBase:
        """Stop the current handle (if any) and start a fresh one."""
        if not config.enabled:
            raise ValueError(f"Tool server '{config.name}' is disabled")

        async with self._lock_for(config.name):
            existing = self._handles.get(config.name)
            if existing is not None:
                logger.info(f"Restarting tool server '{config.name}'")
                await existing.stop()
            return await self._spawn(config)

    async def stop(self, name: str) -> None:
        """Stop one tool server; its handle stays in the table as STOPPED.

        Raises:
            ToolServerNotFoundError: If no handle exists for ``name``
        """
        await self.get_handle(name).stop()

    async def stop_all(self) -> None:
        """Stop every handle and wait until each process has exited."""
        handles = list(self._handles.values())
        if not handles:
            return
        logger.info(f"Stopping {len(handles)} tool server(s)")
        await asyncio.gather(*(handle.stop() for handle in handles))

    async def remove(self, name: str) -> None:
        """Stop a tool server and forget it."""
        handle = self.get_handle(name)
        await handle.stop()
        if self._handles.get(name) is handle:
            del self._handles[name]
        self._locks.pop(name, None)
        logger.info(f"Removed tool server '{name}'")

    # --- Requests ---

    async def list_tools(self, name: str) -> list[ToolDescriptor]:
        return await self.get_handle(name).list_tools()

    async def call_tool(
        self,
        name: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ResultEnvelope:
        """Call a tool on the named server.

        Raises:
            ToolServerNotFoundError: Unknown server name
            ServerUnavailableError: The handle is not READY
            RequestTimeoutError: No reply within the timeout
            ProtocolError: The server replied with an error
        """
        return await self.get_handle(name).call_tool(tool_name, arguments, timeout=timeout)

    # --- Introspection ---

    def get_handle(self, name: str) -> ToolServerHandleBase:
        handle = self._handles.get(name)
        if handle is None:
            raise ToolServerNotFoundError(name)
        return handle

    def has_server(self, name: str) -> bool:
        return name in self._handles

    def available_servers(self) -> list[str]:
        """Names of the handles that can currently accept requests."""
        return [
            name for name, handle in self._handles.items()
            if handle.state is ServerState.READY
        ]

    def statuses(self) -> list[ToolServerStatus]:
        return [handle.status() for handle in self._handles.values()]
