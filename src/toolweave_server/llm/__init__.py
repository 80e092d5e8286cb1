"""LLM gateway.

This package puts local (Ollama, LM Studio) and cloud (OpenAI, Anthropic,
Gemini, Azure OpenAI) chat backends behind one capability interface.
"""

from toolweave_server.llm.anthropic import AnthropicProvider
from toolweave_server.llm.base import LLMProvider, normalize_messages
from toolweave_server.llm.factory import PROVIDER_REGISTRY, create_provider
from toolweave_server.llm.ollama import OllamaProvider
from toolweave_server.llm.openai_compatible import (
    AzureOpenAIProvider,
    GeminiProvider,
    LMStudioProvider,
    OpenAIProvider,
)
from toolweave_server.llm.types import (
    ConversationMessage,
    ProviderConfig,
    ProviderKind,
    ServiceStatus,
)

__all__ = [
    "AnthropicProvider",
    "AzureOpenAIProvider",
    "ConversationMessage",
    "GeminiProvider",
    "LLMProvider",
    "LMStudioProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "PROVIDER_REGISTRY",
    "ProviderConfig",
    "ProviderKind",
    "ServiceStatus",
    "create_provider",
    "normalize_messages",
]
