"""Newline-delimited JSON-RPC framing.

Each message exchanged with a tool server is a single JSON object on its own
line. Encoding always produces exactly one line; decoding accepts one line and
either returns a typed message or raises ParseError. A decode failure is a
local problem and never turns into a protocol-level error.
"""

import json
from dataclasses import dataclass
from typing import Any

from toolweave_server.errors import ParseError

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

DEFAULT_CLIENT_INFO = {"name": "toolweave-server", "version": "0.1.0"}


@dataclass
class JsonRpcResponse:
    """A reply to a request previously sent by the client.

    Attributes:
        id: The request id this reply correlates with
        result: The result payload (None when the reply is an error)
        error: The raw error object, usually ``{"code": ..., "message": ...}``
    """

    id: int | str
    result: Any = None
    error: Any = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass
class JsonRpcNotification:
    """A server-initiated message: a notification or a request to the client."""

    method: str
    params: Any = None
    id: int | str | None = None


def _frame(message: dict[str, Any]) -> bytes:
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


def encode_request(
    request_id: int, method: str, params: dict[str, Any] | None = None
) -> bytes:
    """Encode a request as a single framed line.

    Args:
        request_id: Id unique within the handle's lifetime
        method: JSON-RPC method name (e.g. "tools/call")
        params: Optional params object, omitted from the wire when None

    Returns:
        bytes: The UTF-8 encoded line including the trailing newline
    """
    message: dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
    }
    if params is not None:
        message["params"] = params
    return _frame(message)


def encode_notification(method: str, params: dict[str, Any] | None = None) -> bytes:
    """Encode a notification (a request without an id)."""
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return _frame(message)


def decode_message(raw: bytes | str) -> JsonRpcResponse | JsonRpcNotification:
    """Decode one line received from a tool server.

    Args:
        raw: A single line, with or without the trailing newline

    Returns:
        JsonRpcResponse for replies (objects carrying an id and a result or
        error), JsonRpcNotification for server-initiated messages.

    Raises:
        ParseError: If the line is not JSON, not an object, or neither a
            response nor a notification.
    """
    if isinstance(raw, bytes):
        text = raw.decode("utf-8", errors="replace")
    else:
        text = raw
    text = text.strip()

    try:
        message = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed JSON-RPC line: {e}", text=text) from e

    if not isinstance(message, dict):
        raise ParseError("JSON-RPC message is not an object", text=text)

    if "method" in message:
        return JsonRpcNotification(
            method=str(message["method"]),
            params=message.get("params"),
            id=message.get("id"),
        )

    if "id" in message and ("result" in message or "error" in message):
        return JsonRpcResponse(
            id=message["id"],
            result=message.get("result"),
            error=message.get("error"),
        )

    raise ParseError("JSON-RPC message has neither a method nor a result", text=text)
