"""Providers speaking the OpenAI chat completions API.

OpenAI, Azure OpenAI, Gemini (through its OpenAI-compatible endpoint) and the
local LM Studio server all share one request path built on the ``openai`` SDK.
"""

import logging
from typing import Any

from openai import AsyncAzureOpenAI, AsyncOpenAI

from toolweave_server.llm.base import LLMProvider
from toolweave_server.llm.types import ProviderConfig, ProviderKind, ServiceStatus

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_LMSTUDIO_URL = "http://localhost:1234/v1"
DEFAULT_AZURE_API_VERSION = "2024-02-01"


class OpenAICompatibleProvider(LLMProvider):
    """Shared chat and model listing for OpenAI-style backends."""

    async def _complete(
        self, client: Any, config: ProviderConfig, messages: list[dict[str, str]]
    ) -> str:
        response = await client.chat.completions.create(
            model=config.model,
            messages=messages,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def _list_models(self, client: Any, config: ProviderConfig) -> list[str]:
        page = await client.models.list()
        return [self._clean_model_id(model.id) for model in page.data if self._keep_model(model.id)]

    def _keep_model(self, model_id: str) -> bool:
        return True

    def _clean_model_id(self, model_id: str) -> str:
        return model_id


class OpenAIProvider(OpenAICompatibleProvider):
    kind = ProviderKind.OPENAI
    display_name = "OpenAI"
    fallback_models = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo")

    def _create_client(self, config: ProviderConfig) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            organization=config.organization,
            timeout=config.timeout,
        )

    def _keep_model(self, model_id: str) -> bool:
        return "gpt" in model_id


class GeminiProvider(OpenAICompatibleProvider):
    kind = ProviderKind.GEMINI
    display_name = "Gemini"
    fallback_models = (
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-1.0-pro",
        "gemini-pro",
    )

    def _create_client(self, config: ProviderConfig) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url or GEMINI_BASE_URL,
            timeout=config.timeout,
        )

    def _clean_model_id(self, model_id: str) -> str:
        return model_id.removeprefix("models/")


class AzureOpenAIProvider(OpenAICompatibleProvider):
    """Azure OpenAI; ``model`` is the deployment name and ``base_url`` the endpoint."""

    kind = ProviderKind.AZURE_OPENAI
    display_name = "Azure OpenAI"
    fallback_models = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-35-turbo")

    def is_service_ready(self) -> ServiceStatus:
        status = super().is_service_ready()
        if not status.ready:
            return status
        if not (self.config.base_url and self.config.base_url.strip()):
            return ServiceStatus(False, "Azure OpenAI endpoint is not configured")
        return status

    def _create_client(self, config: ProviderConfig) -> AsyncAzureOpenAI:
        return AsyncAzureOpenAI(
            api_key=config.api_key,
            azure_endpoint=config.base_url,
            api_version=config.api_version or DEFAULT_AZURE_API_VERSION,
            timeout=config.timeout,
        )


class LMStudioProvider(OpenAICompatibleProvider):
    """Local LM Studio server exposing the OpenAI API."""

    kind = ProviderKind.LMSTUDIO
    display_name = "LM Studio"
    requires_api_key = False

    def _create_client(self, config: ProviderConfig) -> AsyncOpenAI:
        base_url = config.base_url or DEFAULT_LMSTUDIO_URL
        logger.info(f"Creating LM Studio client for {base_url}")
        # The local server ignores the key but the SDK insists on one.
        return AsyncOpenAI(
            api_key=config.api_key or "lm-studio", base_url=base_url, timeout=config.timeout
        )

    async def _probe(self, client: Any, config: ProviderConfig) -> bool:
        loaded = await self._list_models(client, config)
        if config.model not in loaded:
            logger.warning(f"LM Studio model '{config.model}' is not loaded")
            return False
        return True
