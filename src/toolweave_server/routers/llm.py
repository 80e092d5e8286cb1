"""LLM provider endpoints: status, model listing and credential updates."""

import logging

from fastapi import APIRouter, Depends

from toolweave_server.dependencies import get_llm_provider
from toolweave_server.llm import LLMProvider
from toolweave_server.models.llm import (
    LLMModelsResponse,
    LLMStatusResponse,
    UpdateCredentialRequest,
)
from toolweave_server.routers.errors import api_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/llm", tags=["llm"])


def _status_of(provider: LLMProvider, available: bool) -> LLMStatusResponse:
    status = provider.is_service_ready()
    return LLMStatusResponse(
        provider=provider.kind.value,
        model=provider.model,
        ready=status.ready,
        reason=status.reason,
        available=available,
    )


@router.get("/status", response_model=LLMStatusResponse)
async def llm_status(provider: LLMProvider = Depends(get_llm_provider)) -> LLMStatusResponse:
    """Report readiness and probe the backend."""
    return _status_of(provider, await provider.is_available())


@router.get("/models", response_model=LLMModelsResponse)
async def llm_models(provider: LLMProvider = Depends(get_llm_provider)) -> LLMModelsResponse:
    return LLMModelsResponse(
        provider=provider.kind.value, models=await provider.get_available_models()
    )


@router.put("/credential", response_model=LLMStatusResponse)
async def update_credential(
    request_body: UpdateCredentialRequest,
    provider: LLMProvider = Depends(get_llm_provider),
) -> LLMStatusResponse:
    """Replace the provider's API key.

    Raises:
        HTTPException: 400 if the provider does not use an API key
    """
    try:
        provider.update_credential(request_body.api_key)
    except ValueError as e:
        raise api_error(400, "credential_not_supported", str(e))
    logger.info(f"Updated credential for {provider.kind.value} provider")
    return _status_of(provider, await provider.is_available())
