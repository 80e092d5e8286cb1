"""In-process representation of one tool server running as a child process.

A ToolServerHandle owns a child process and its stdio pipes. Requests are
written to stdin as framed JSON-RPC lines and any number of them may be in
flight at once; a background reader task consumes stdout and resolves the
pending slot whose id matches each reply. Replies may arrive in any order.
"""

import asyncio
import contextlib
import logging
import os
from typing import Any

from toolweave_server.errors import (
    ParseError,
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

DEFAULT_MAX_LINE_BYTES = 16 * 1024 * 1024


class ToolServerHandle(ToolServerHandleBase):
    """Supervises a single tool server process.

    Attributes:
        process: The underlying asyncio subprocess (None before spawn)
    """

    def __init__(
        self,
        config: ToolServerConfig,
        *,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)
        self.max_line_bytes = max_line_bytes
        self.process: asyncio.subprocess.Process | None = None

        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task | None = None
        self._stderr_task: asyncio.Task | None = None
        self._terminate_task: asyncio.Task | None = None
        self._spawn_started = False
        self._spawn_finished = asyncio.Event()

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    # --- Lifecycle ---

    async def start(self) -> None:
        """Spawn the process and perform the initialize handshake.

        Never raises for spawn or handshake failures: the handle ends up
        DEGRADED with ``last_error`` describing what went wrong. If ``stop()``
        runs first or while the process is being spawned, the handle stays
        STOPPED and ``stop()`` reaps the process.
        """
        if self.state is ServerState.STOPPED:
            return

        command_line = " ".join([self.config.command, *self.config.args])
        logger.info(f"Starting tool server '{self.name}': {command_line}")

        env = {**os.environ, **self.config.env}
        self._spawn_started = True
        try:
            self.process = await asyncio.create_subprocess_exec(
                self.config.command,
                *self.config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=self.config.cwd,
                limit=self.max_line_bytes,
            )
        except OSError as e:
            self._degrade(f"failed to spawn process: {e}")
            return
        finally:
            self._spawn_finished.set()

        if self.state is ServerState.STOPPED:
            logger.info(f"Tool server '{self.name}' was stopped while starting")
            return

        self._mark_started()
        self._reader_task = asyncio.create_task(
            self._read_stdout(), name=f"tool-server-{self.name}-stdout"
        )
        self._stderr_task = asyncio.create_task(
            self._read_stderr(), name=f"tool-server-{self.name}-stderr"
        )

        await self._handshake()
        if self.state is ServerState.READY:
            logger.info(f"Tool server '{self.name}' running as pid {self.process.pid}")

    async def stop(self) -> None:
        """Stop the process and fail every pending request.

        Safe to call from any state and more than once. When a spawn is in
        progress, waits for it so the new process is terminated too.
        """
        if self.state is ServerState.STOPPED:
            return

        logger.info(f"Stopping tool server '{self.name}'")
        self._transition(ServerState.STOPPED)
        self._fail_pending(
            lambda: RequestCancelledError(
                f"Request to tool server '{self.name}' was cancelled: server stopped"
            )
        )

        if self._spawn_started:
            await self._spawn_finished.wait()

        if self.process is not None and self.process.stdin is not None:
            if not self.process.stdin.is_closing():
                self.process.stdin.close()

        await self._terminate_process()
        if self._terminate_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._terminate_task

        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        logger.info(f"Tool server '{self.name}' stopped")

    # --- Request plumbing ---

    async def _send(self, payload: bytes) -> None:
        async with self._write_lock:
            stdin = self.process.stdin if self.process is not None else None
            if stdin is None or stdin.is_closing():
                raise BrokenPipeError("stdin is closed")
            stdin.write(payload)
            await stdin.drain()

    async def _request(
        self, method: str, params: dict[str, Any] | None, timeout: float
    ) -> Any:
        request_id, future = self._new_pending(method)
        try:
            await self._send(encode_request(request_id, method, params))
        except (BrokenPipeError, ConnectionResetError) as e:
            self._pending.pop(request_id, None)
            self._degrade(f"write to process failed: {e}")
            raise ServerUnavailableError(self.name, self.last_error) from e

        return await self._await_reply(request_id, method, future, timeout)

    async def _notify(self, method: str) -> None:
        await self._send(encode_notification(method))

    def _on_degraded(self) -> None:
        if self.process is not None and self.process.returncode is None:
            self._terminate_task = asyncio.create_task(self._terminate_process())

    async def _terminate_process(self) -> None:
        process = self.process
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Tool server '{self.name}' ignored SIGTERM for {self.stop_timeout}s, killing"
            )
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    # --- Background readers ---

    async def _read_stdout(self) -> None:
        assert self.process is not None and self.process.stdout is not None
        stdout = self.process.stdout

        while True:
            try:
                line = await stdout.readline()
            except ValueError:
                # StreamReader drops the oversized chunk before raising
                self._on_malformed_line(f"line exceeds {self.max_line_bytes} bytes")
                continue
            if not line:
                break
            if not line.strip():
                continue

            try:
                message = decode_message(line)
            except ParseError as e:
                self._on_malformed_line(str(e))
                continue

            self._malformed_lines = 0
            if isinstance(message, JsonRpcResponse):
                self._dispatch(message)
            else:
                logger.debug(f"[{self.name}] ignoring server message {message.method}")

        returncode = await self.process.wait()
        self._on_process_exit(returncode)

    async def _read_stderr(self) -> None:
        assert self.process is not None and self.process.stderr is not None
        stderr = self.process.stderr
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.debug(f"[{self.name} stderr] {text}")

    def _on_process_exit(self, returncode: int | None) -> None:
        if self.state is ServerState.STOPPED:
            logger.debug(f"Tool server '{self.name}' exited with code {returncode}")
            return
        if self.state is ServerState.DEGRADED:
            logger.info(f"Degraded tool server '{self.name}' exited with code {returncode}")
            return
        self._degrade(f"process exited unexpectedly with code {returncode}")
