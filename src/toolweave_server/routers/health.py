"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from toolweave_server import __version__
from toolweave_server.models.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Reports the version, the readiness of the LLM provider and the lifecycle
    state of every tool server. Never probes the LLM backend.
    """
    response = HealthResponse(status="ok", version=__version__)

    provider = getattr(request.app.state, "llm_provider", None)
    if provider is not None:
        status = provider.is_service_ready()
        response.llm_provider = provider.kind.value
        response.llm_ready = status.ready
        response.llm_reason = status.reason

    supervisor = getattr(request.app.state, "supervisor", None)
    if supervisor is not None:
        response.tool_servers = {
            status.name: status.state.value for status in supervisor.statuses()
        }
        degraded = [name for name, state in response.tool_servers.items() if state == "degraded"]
        if degraded:
            logger.debug(f"Degraded tool servers: {degraded}")
            response.status = "degraded"

    return response
