"""Type definitions for the LLM gateway."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple


class ProviderKind(str, Enum):
    """Supported LLM backends."""

    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    AZURE_OPENAI = "azure-openai"

    @property
    def is_local(self) -> bool:
        return self in (ProviderKind.OLLAMA, ProviderKind.LMSTUDIO)


class ServiceStatus(NamedTuple):
    """Readiness of a provider: ``(ready, reason)``."""

    ready: bool
    reason: str = ""


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one provider.

    Attributes:
        provider: Backend kind
        model: Model name sent with every request
        api_key: Credential for cloud backends
        base_url: Endpoint override (required for Azure OpenAI)
        organization: OpenAI organization id
        api_version: Azure OpenAI API version
        temperature: Sampling temperature
        max_tokens: Upper bound on generated tokens
        timeout: Seconds a single backend call may take
    """

    provider: ProviderKind
    model: str
    api_key: str | None = None
    base_url: str | None = None
    organization: str | None = None
    api_version: str | None = None
    temperature: float = 0.2
    max_tokens: int = 2048
    timeout: float = 60.0

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ConversationMessage:
    """One message of a conversation."""

    role: str
    content: str
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex[:10])
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the ``{role, content}`` shape chat backends expect."""
        return {"role": self.role, "content": self.content}
