"""Rendering of tool results into markdown blocks for the conversation."""

import json
from typing import Any

RESULT_MARKER = "**Query Result:**"
ERROR_MARKER = "**Query Error:**"

MAX_ITEMS = 50


def _json_block(value: Any) -> str:
    return "```json\n" + json.dumps(value, indent=2, ensure_ascii=False, default=str) + "\n```"


def _truncated(items: list[Any]) -> tuple[list[Any], str]:
    if len(items) <= MAX_ITEMS:
        return items, ""
    note = f"\n\nNote: {len(items) - MAX_ITEMS} additional items not shown."
    return items[:MAX_ITEMS], note


def _render(data: Any) -> str:
    # bool is an int subclass but is not a count
    if isinstance(data, (int, float)) and not isinstance(data, bool):
        return f"The query returned: **{data}**"

    if isinstance(data, dict):
        items = data.get("value")
        if data.get("@odata.count") is not None:
            count = data["@odata.count"]
            if isinstance(items, list) and items:
                shown, note = _truncated(items)
                return (
                    f"Found **{count}** items. Here are the details:\n\n"
                    f"{_json_block(shown)}{note}"
                )
            return f"Found **{count}** items."
        if isinstance(items, list):
            shown, note = _truncated(items)
            return f"Found **{len(items)}** items:\n\n{_json_block(shown)}{note}"

    if isinstance(data, list):
        shown, note = _truncated(data)
        return f"{_json_block(shown)}{note}"

    return _json_block(data)


def format_result(data: Any) -> str:
    """Render extracted tool data as a result block."""
    return f"{RESULT_MARKER}\n{_render(data)}"


def format_error(message: str) -> str:
    """Render a failed tool invocation as a degraded result block."""
    return f"{ERROR_MARKER} {message}"
