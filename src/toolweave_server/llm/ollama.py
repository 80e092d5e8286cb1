"""Ollama provider backed by ``ollama.AsyncClient``."""

import logging
from typing import Any

import ollama

from toolweave_server.llm.base import LLMProvider
from toolweave_server.llm.types import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


def _model_name(model_obj: Any) -> str | None:
    if hasattr(model_obj, "model"):
        return model_obj.model
    if hasattr(model_obj, "name"):
        return model_obj.name
    if isinstance(model_obj, dict):
        return model_obj.get("model") or model_obj.get("name")
    return None


class OllamaProvider(LLMProvider):
    """Local Ollama server.

    Needs no credential. ``is_available`` additionally checks that the
    configured model is installed.
    """

    kind = ProviderKind.OLLAMA
    display_name = "Ollama"
    requires_api_key = False
    supports_tool_role = True

    @property
    def host(self) -> str:
        return self.config.base_url or DEFAULT_OLLAMA_HOST

    def _create_client(self, config: ProviderConfig) -> ollama.AsyncClient:
        logger.info(f"Creating Ollama client for host: {self.host}")
        return ollama.AsyncClient(host=self.host, timeout=config.timeout)

    async def _complete(
        self,
        client: ollama.AsyncClient,
        config: ProviderConfig,
        messages: list[dict[str, str]],
    ) -> str:
        response = await client.chat(
            model=config.model,
            messages=messages,
            options={"temperature": config.temperature, "num_predict": config.max_tokens},
        )
        if hasattr(response, "message"):
            return response.message.content or ""
        return response.get("message", {}).get("content", "")

    async def _list_models(
        self, client: ollama.AsyncClient, config: ProviderConfig
    ) -> list[str]:
        response = await client.list()
        if hasattr(response, "models"):
            models_list = response.models
        else:
            models_list = response.get("models", [])

        names = [name for name in (_model_name(m) for m in models_list) if name]
        logger.debug(f"Retrieved {len(names)} models from Ollama")
        return names

    async def _probe(self, client: ollama.AsyncClient, config: ProviderConfig) -> bool:
        installed = await self._list_models(client, config)
        if config.model not in installed:
            logger.warning(f"Ollama model '{config.model}' is not installed")
            return False
        return True
