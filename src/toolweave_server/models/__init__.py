"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from toolweave_server.models.chat import ChatRequest, ChatResponse
from toolweave_server.models.health import HealthResponse
from toolweave_server.models.llm import (
    LLMModelsResponse,
    LLMStatusResponse,
    UpdateCredentialRequest,
)
from toolweave_server.models.tool_servers import (
    ToolCallRequest,
    ToolCallResponse,
    ToolListResponse,
    ToolServerListResponse,
    ToolServerStatusResponse,
)

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "HealthResponse",
    "LLMModelsResponse",
    "LLMStatusResponse",
    "ToolCallRequest",
    "ToolCallResponse",
    "ToolListResponse",
    "ToolServerListResponse",
    "ToolServerStatusResponse",
    "UpdateCredentialRequest",
]
