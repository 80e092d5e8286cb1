"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including the lifespan that starts the tool
servers and the LLM provider and tears them down on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolweave_server import __version__
from toolweave_server.config import ToolweaveSettings
from toolweave_server.llm import create_provider
from toolweave_server.routers import chat, health, llm, tool_servers
from toolweave_server.services import Orchestrator
from toolweave_server.tool_servers import ToolServerSupervisor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    The supervisor, the provider and the orchestrator are created once at
    startup and stored in app.state for reuse across all requests. Every tool
    server process is stopped on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: ToolweaveSettings = app.state.settings

    supervisor = ToolServerSupervisor(
        handshake_timeout=settings.handshake_timeout,
        request_timeout=settings.request_timeout,
        stop_timeout=settings.stop_timeout,
        max_malformed_lines=settings.max_malformed_lines,
        max_consecutive_timeouts=settings.max_consecutive_timeouts,
    )
    app.state.supervisor = supervisor

    provider = create_provider(settings.provider_config())
    app.state.llm_provider = provider

    app.state.orchestrator = Orchestrator(
        provider,
        supervisor,
        max_rounds=settings.max_orchestration_rounds,
        incorporate_results=settings.incorporate_tool_results,
        default_server=settings.default_tool_server,
        default_tool=settings.default_tool,
        tool_timeout=settings.request_timeout,
    )

    await supervisor.start_all(settings.tool_server_configs())
    ready = supervisor.available_servers()
    logger.info(f"Tool servers ready: {ready if ready else 'none'}")

    status = provider.is_service_ready()
    if status.ready:
        logger.info(f"LLM provider {settings.llm_provider.value} ready (model={settings.llm_model})")
    else:
        logger.warning(f"LLM provider not ready: {status.reason}")

    try:
        yield
    finally:
        await supervisor.stop_all()
        logger.info("All tool servers stopped")


def create_app(settings: ToolweaveSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional ToolweaveSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from toolweave_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="toolweave-server",
        description="Headless server weaving tool server results into LLM conversations",
        version=__version__,
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(chat.router)
    app.include_router(tool_servers.router)
    app.include_router(llm.router)

    return app
