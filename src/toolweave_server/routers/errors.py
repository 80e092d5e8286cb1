"""Mapping of toolweave errors to HTTP error responses.

Every error body has the shape ``{"error": {"code", "message", "details"}}``.
"""

import logging
from typing import Any

from fastapi import HTTPException

from toolweave_server.errors import (
    LLMRequestError,
    ParseError,
    ProtocolError,
    ReadinessError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerUnavailableError,
    ToolServerNotFoundError,
    ToolweaveError,
)

logger = logging.getLogger(__name__)


def api_error(
    status_code: int, code: str, message: str, details: dict[str, Any] | None = None
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": {"code": code, "message": message, "details": details or {}}},
    )


def http_error_for(exc: ToolweaveError) -> HTTPException:
    """Translate a toolweave error into an HTTPException."""
    if isinstance(exc, ToolServerNotFoundError):
        return api_error(404, "tool_server_not_found", str(exc), {"name": exc.name})
    if isinstance(exc, ServerUnavailableError):
        return api_error(
            503, "server_unavailable", str(exc), {"name": exc.name, "reason": exc.reason}
        )
    if isinstance(exc, RequestCancelledError):
        return api_error(503, "request_cancelled", str(exc))
    if isinstance(exc, RequestTimeoutError):
        return api_error(504, "request_timeout", str(exc))
    if isinstance(exc, ProtocolError):
        return api_error(
            502,
            "tool_error",
            exc.message,
            {"code": exc.code, "context": exc.context},
        )
    if isinstance(exc, ReadinessError):
        return api_error(503, "llm_not_ready", str(exc))
    if isinstance(exc, LLMRequestError):
        return api_error(502, "llm_error", str(exc))
    if isinstance(exc, ParseError):
        return api_error(502, "parse_error", str(exc))

    logger.error(f"Unhandled toolweave error: {exc}")
    return api_error(500, "internal_error", str(exc))
