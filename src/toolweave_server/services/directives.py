"""Detection of tool execution directives embedded in LLM output.

A directive is an ``<execute_query>`` element wrapping a JSON object::

    <execute_query>{"server": "docs", "tool": "search", "arguments": {"q": "x"}}</execute_query>

The query shorthand ``{"endpoint", "method", "params"}`` is also accepted and
is routed to the configured default server and tool. Directives cannot nest:
the first closing tag ends a directive. An open tag without a closing tag is
left as plain text.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

OPEN_TAG = "<execute_query>"
CLOSE_TAG = "</execute_query>"

DIRECTIVE_PATTERN = re.compile(
    re.escape(OPEN_TAG) + r"(.*?)" + re.escape(CLOSE_TAG), re.DOTALL
)


@dataclass
class ExecutionDirective:
    """One tool invocation requested by the model.

    Attributes:
        server: Target tool server name
        tool: Tool name on that server
        arguments: Structured arguments for tools/call
        start: Offset of the opening tag in the scanned text
        end: Offset just past the closing tag
        raw: The untouched directive body
        error: Why the body could not be turned into a call, if it could not
    """

    server: str | None
    tool: str | None
    arguments: dict[str, Any] = field(default_factory=dict)
    start: int = 0
    end: int = 0
    raw: str = ""
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _from_shorthand(body: dict[str, Any]) -> dict[str, Any]:
    params = body.get("params") or {}
    if not isinstance(params, dict):
        params = {}
    return {
        "apiType": "graph",
        "method": str(body.get("method") or "get").lower(),
        "path": body["endpoint"],
        "queryParams": {key: _stringify(value) for key, value in params.items()},
    }


def _resolve(
    body: Any, default_server: str | None, default_tool: str | None
) -> tuple[str | None, str | None, dict[str, Any], str | None]:
    if not isinstance(body, dict):
        return None, None, {}, "directive body must be a JSON object"

    if "endpoint" in body and "tool" not in body:
        server = body.get("server") or default_server
        tool = default_tool
        arguments = _from_shorthand(body)
    else:
        server = body.get("server") or default_server
        tool = body.get("tool")
        arguments = body.get("arguments") or {}
        if not isinstance(arguments, dict):
            return server, tool, {}, "directive arguments must be a JSON object"

    if not server:
        return server, tool, arguments, "directive does not name a tool server"
    if not tool:
        return server, tool, arguments, "directive does not name a tool"
    return str(server), str(tool), arguments, None


def parse_directives(
    text: str,
    *,
    default_server: str | None = None,
    default_tool: str | None = None,
) -> list[ExecutionDirective]:
    """Return every directive in ``text``, left to right.

    Args:
        text: Model output to scan
        default_server: Server used when a body names none (and for the
            query shorthand)
        default_tool: Tool used for the query shorthand

    Returns:
        list[ExecutionDirective]: Directives in order of appearance. Bodies
        that are not valid JSON or lack a target have ``error`` set.
    """
    directives: list[ExecutionDirective] = []

    for match in DIRECTIVE_PATTERN.finditer(text):
        raw = match.group(1)
        try:
            body = json.loads(raw.strip())
        except json.JSONDecodeError as e:
            directives.append(
                ExecutionDirective(
                    server=None,
                    tool=None,
                    start=match.start(),
                    end=match.end(),
                    raw=raw,
                    error=f"directive body is not valid JSON: {e}",
                )
            )
            continue

        server, tool, arguments, error = _resolve(body, default_server, default_tool)
        directives.append(
            ExecutionDirective(
                server=server,
                tool=tool,
                arguments=arguments,
                start=match.start(),
                end=match.end(),
                raw=raw,
                error=error,
            )
        )

    return directives
