"""Business logic services for toolweave-server.

This package contains directive parsing, result extraction and formatting,
and the orchestration loop that ties the LLM gateway to the tool servers.
"""

from toolweave_server.services.directives import ExecutionDirective, parse_directives
from toolweave_server.services.orchestrator import (
    DEFAULT_SYSTEM_PROMPT,
    OrchestrationEvent,
    OrchestrationResult,
    Orchestrator,
    ToolResult,
)
from toolweave_server.services.response_extractor import extract
from toolweave_server.services.result_formatter import (
    ERROR_MARKER,
    RESULT_MARKER,
    format_error,
    format_result,
)

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "ERROR_MARKER",
    "ExecutionDirective",
    "OrchestrationEvent",
    "OrchestrationResult",
    "Orchestrator",
    "RESULT_MARKER",
    "ToolResult",
    "extract",
    "format_error",
    "format_result",
    "parse_directives",
]
