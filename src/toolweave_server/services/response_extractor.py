"""Recovery of structured payloads from free-text tool results.

Tool servers frequently wrap their JSON payload in prose, e.g.
``"Result:\\n\\n{...}\\nDone."``. The extractor locates the first balanced
JSON object or array in the concatenated text items of a result envelope.
"""

import json
import logging
from typing import Any, Mapping

from toolweave_server.errors import ParseError
from toolweave_server.tool_servers.types import ResultEnvelope

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}


def _envelope_of(raw: ResultEnvelope | Mapping[str, Any] | str) -> ResultEnvelope:
    if isinstance(raw, ResultEnvelope):
        return raw
    if isinstance(raw, str):
        return ResultEnvelope.from_result({"content": raw})
    if isinstance(raw, Mapping):
        if "content" not in raw and isinstance(raw.get("result"), Mapping):
            raw = raw["result"]
        return ResultEnvelope.from_result(raw)
    raise ParseError(f"Unsupported tool result type: {type(raw).__name__}")


def _balanced_end(text: str, start: int) -> int | None:
    """Return the index just past the bracket closing ``text[start]``.

    Brackets inside double-quoted strings are ignored; a backslash escapes the
    next character inside a string. Returns None if the bracket never closes.
    """
    stack = [_CLOSERS[text[start]]]
    in_string = False
    escaped = False

    for index in range(start + 1, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if char != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return index + 1
    return None


def find_json_candidate(text: str) -> str | None:
    """Find the first balanced ``{...}`` or ``[...]`` substring of ``text``.

    A start bracket that never balances is skipped and scanning resumes at
    the next candidate.
    """
    index = 0
    while index < len(text):
        if text[index] in _CLOSERS:
            end = _balanced_end(text, index)
            if end is not None:
                return text[index:end]
        index += 1
    return None


def extract(raw: ResultEnvelope | Mapping[str, Any] | str) -> Any:
    """Extract the structured payload from a tool result.

    Args:
        raw: A ResultEnvelope, a raw ``{"content": [...]}`` mapping (optionally
            wrapped in ``{"result": ...}``) or a plain string

    Returns:
        The decoded JSON value (dict, list, ...)

    Raises:
        ParseError: If no JSON candidate exists or the candidate does not
            parse. ``ParseError.text`` carries the original text.
    """
    envelope = _envelope_of(raw)

    for item in envelope.content:
        if item.type == "json" and item.json is not None:
            return item.json

    text = envelope.text
    candidate = find_json_candidate(text)
    if candidate is None:
        raise ParseError("No JSON payload found in tool result", text=text)

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug(f"JSON candidate failed to parse: {e}")
        raise ParseError(f"Tool result contains malformed JSON: {e}", text=text) from e
