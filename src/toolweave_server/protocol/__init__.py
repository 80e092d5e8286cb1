"""Wire protocol spoken with tool server processes.

This package provides the newline-delimited JSON-RPC codec and the error
classification table used to turn tool failures into structured errors.
"""

from toolweave_server.protocol.codec import (
    DEFAULT_CLIENT_INFO,
    JSONRPC_VERSION,
    PROTOCOL_VERSION,
    JsonRpcNotification,
    JsonRpcResponse,
    decode_message,
    encode_notification,
    encode_request,
)
from toolweave_server.protocol.errors import (
    ERROR_CLASSIFICATION_RULES,
    UNKNOWN_ERROR_MESSAGE,
    ErrorCode,
    classify_error,
)

__all__ = [
    # Codec
    "DEFAULT_CLIENT_INFO",
    "JSONRPC_VERSION",
    "PROTOCOL_VERSION",
    "JsonRpcNotification",
    "JsonRpcResponse",
    "decode_message",
    "encode_notification",
    "encode_request",
    # Error classification
    "ERROR_CLASSIFICATION_RULES",
    "UNKNOWN_ERROR_MESSAGE",
    "ErrorCode",
    "classify_error",
]
