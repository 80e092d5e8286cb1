"""FastAPI routers for API endpoints.

This package contains all route handlers organized by resource type.
Each router module defines endpoints for a specific domain (health, chat,
tool servers, LLM).
"""

from toolweave_server.routers import chat, health, llm, tool_servers

__all__ = [
    "chat",
    "health",
    "llm",
    "tool_servers",
]
