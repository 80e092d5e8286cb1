"""Factory selecting the provider class for a configured backend."""

import logging

from toolweave_server.llm.anthropic import AnthropicProvider
from toolweave_server.llm.base import LLMProvider
from toolweave_server.llm.ollama import OllamaProvider
from toolweave_server.llm.openai_compatible import (
    AzureOpenAIProvider,
    GeminiProvider,
    LMStudioProvider,
    OpenAIProvider,
)
from toolweave_server.llm.types import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)

# map ProviderKind to its implementation
PROVIDER_REGISTRY: dict[ProviderKind, type[LLMProvider]] = {
    ProviderKind.OLLAMA: OllamaProvider,
    ProviderKind.LMSTUDIO: LMStudioProvider,
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.GEMINI: GeminiProvider,
    ProviderKind.AZURE_OPENAI: AzureOpenAIProvider,
}


def create_provider(config: ProviderConfig) -> LLMProvider:
    """Create the provider for ``config.provider``.

    Construction never fails on missing credentials; use
    ``is_service_ready`` to find out whether the provider can be used.

    Raises:
        ValueError: If the provider kind is not supported
    """
    try:
        kind = ProviderKind(config.provider)
        provider_cls = PROVIDER_REGISTRY[kind]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported LLM provider: {config.provider}") from exc

    provider = provider_cls(config)
    status = provider.is_service_ready()
    if status.ready:
        logger.info(f"Created {provider.display_name} provider (model={config.model})")
    else:
        logger.warning(f"Created {provider.display_name} provider but it is not ready: {status.reason}")
    return provider
