"""Classification of tool server failures into structured errors.

Tool servers report failures either as structured ``{code, message}`` objects
or as free text (an exception message, a plain string). Structured errors pass
through untouched. Free text is matched against an ordered table of substring
rules; the first matching rule decides the HTTP-style code.
"""

import logging
from enum import IntEnum
from typing import Any, Mapping

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


class ErrorCode(IntEnum):
    """HTTP-style codes used for classified tool errors."""

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503


# Order matters: "...permission ... required" is a 403, not a 400.
ERROR_CLASSIFICATION_RULES: tuple[tuple[tuple[str, ...], ErrorCode], ...] = (
    (("not found", "does not exist"), ErrorCode.NOT_FOUND),
    (("unauthorized", "unauthenticated"), ErrorCode.UNAUTHORIZED),
    (("permission", "forbidden"), ErrorCode.FORBIDDEN),
    (("invalid", "required", "missing"), ErrorCode.BAD_REQUEST),
)


def _is_structured(error: Any) -> bool:
    return isinstance(error, Mapping) and "code" in error and "message" in error


def _message_of(error: Any) -> str | None:
    if error is None:
        return None
    if isinstance(error, str):
        return error or None
    if isinstance(error, BaseException):
        return str(error) or None
    message = getattr(error, "message", None)
    if message:
        return str(message)
    return str(error) or None


def _code_for(message: str) -> ErrorCode:
    lowered = message.lower()
    for patterns, code in ERROR_CLASSIFICATION_RULES:
        if any(pattern in lowered for pattern in patterns):
            return code
    return ErrorCode.INTERNAL_SERVER_ERROR


def classify_error(error: Any, context: str) -> Mapping[str, Any]:
    """Turn any failure into a structured ``{code, message, context}`` error.

    Args:
        error: A structured error mapping, an exception, a string, or None
        context: Identifies the call site (e.g. "docs.tools/call")

    Returns:
        The identical object when ``error`` is already structured, otherwise a
        new dict with ``code``, ``message``, ``context`` and ``data``.
    """
    if _is_structured(error):
        return error

    message = _message_of(error)
    if message is None:
        code = ErrorCode.INTERNAL_SERVER_ERROR
        message = UNKNOWN_ERROR_MESSAGE
    else:
        code = _code_for(message)

    logger.debug(f"Classified error in {context} as {int(code)}: {message}")

    return {
        "code": int(code),
        "message": message,
        "context": context,
        "data": {"error_type": type(error).__name__ if error is not None else None},
    }
