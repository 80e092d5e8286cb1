"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that read the objects
created by the application lifespan from app.state.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from toolweave_server.config import ToolweaveSettings
from toolweave_server.llm import LLMProvider
from toolweave_server.services import Orchestrator
from toolweave_server.tool_servers import ToolServerSupervisor


@lru_cache
def get_settings() -> ToolweaveSettings:
    """Get the application settings instance.

    Cached so that the same settings instance is reused across all requests.
    Settings are loaded from environment variables with the TOOLWEAVE_ prefix.
    """
    return ToolweaveSettings()


def _not_initialized(component: str) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "error": {
                "code": "not_initialized",
                "message": f"{component} not initialized",
                "details": {},
            }
        },
    )


def get_supervisor(request: Request) -> ToolServerSupervisor:
    """Get the tool server supervisor from app state.

    Raises:
        HTTPException: If the supervisor is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "supervisor"):
        raise _not_initialized("Tool server supervisor")
    return request.app.state.supervisor


def get_llm_provider(request: Request) -> LLMProvider:
    """Get the LLM provider from app state.

    Raises:
        HTTPException: If the provider is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "llm_provider"):
        raise _not_initialized("LLM provider")
    return request.app.state.llm_provider


def get_orchestrator(request: Request) -> Orchestrator:
    if not hasattr(request.app.state, "orchestrator"):
        raise _not_initialized("Orchestrator")
    return request.app.state.orchestrator
