"""Provider-agnostic LLM capability interface.

Every backend implements the same five capabilities: ``chat``,
``is_available``, ``get_available_models``, ``is_service_ready`` and
``update_credential``. Readiness is reported without raising; only ``chat``
raises, and only when invoked while not ready or when the backend fails.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import replace
from typing import Any, Mapping

from toolweave_server.errors import LLMRequestError, ReadinessError
from toolweave_server.llm.types import (
    ConversationMessage,
    ProviderConfig,
    ProviderKind,
    ServiceStatus,
)

logger = logging.getLogger(__name__)

Message = ConversationMessage | Mapping[str, Any]


def normalize_messages(messages: Sequence[Message]) -> list[dict[str, str]]:
    """Convert messages to plain ``{role, content}`` dicts."""
    normalized = []
    for message in messages:
        if isinstance(message, ConversationMessage):
            normalized.append(message.to_dict())
        else:
            normalized.append(
                {"role": str(message["role"]), "content": str(message.get("content") or "")}
            )
    return normalized


class LLMProvider(ABC):
    """Base class for all LLM backends.

    The backend client is created lazily and cached; ``update_credential``
    drops the cache so the next call builds a client with the new key.

    Attributes:
        kind: Which backend this class talks to
        display_name: Human-readable name used in readiness reasons
        requires_api_key: Cloud backends need a non-blank key to be ready
        supports_tool_role: Whether ``tool`` messages can be sent as such
        fallback_models: Returned when the backend model listing fails
    """

    kind: ProviderKind
    display_name: str
    requires_api_key: bool = True
    supports_tool_role: bool = False
    fallback_models: tuple[str, ...] = ()

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config
        self._client: Any = None

    @property
    def model(self) -> str:
        return self.config.model

    # --- Readiness ---

    def is_service_ready(self) -> ServiceStatus:
        """Report whether the provider can be used, and why not if it cannot."""
        if self.requires_api_key and not self.config.has_api_key:
            return ServiceStatus(False, f"{self.display_name} API key is not configured")
        return ServiceStatus(True, "")

    def update_credential(self, new_key: str) -> None:
        """Replace the API key; the client is rebuilt on next use.

        Raises:
            ValueError: For local providers, which take no credential
        """
        if not self.requires_api_key:
            raise ValueError(f"{self.display_name} does not use an API key")
        self.config = replace(self.config, api_key=new_key)
        self._client = None
        logger.info(f"{self.display_name} credential updated")

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._create_client(self.config)
        return self._client

    # --- Capabilities ---

    async def chat(self, messages: Sequence[Message]) -> str:
        """Send the conversation and return the reply text.

        Raises:
            ReadinessError: If the provider is not ready
            LLMRequestError: If the backend call fails or exceeds ``config.timeout``
        """
        status = self.is_service_ready()
        if not status.ready:
            raise ReadinessError(status.reason)

        config = self.config
        client = self._get_client()
        adapted = self.adapt_messages(normalize_messages(messages))
        logger.debug(
            f"{self.display_name} chat: model={config.model}, messages={len(adapted)}"
        )
        try:
            return await asyncio.wait_for(
                self._complete(client, config, adapted), timeout=config.timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"{self.display_name} chat timed out after {config.timeout}s")
            raise LLMRequestError(
                f"{self.display_name} request timed out after {config.timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"{self.display_name} chat failed: {e}")
            raise LLMRequestError(f"{self.display_name} request failed: {e}") from e

    async def is_available(self) -> bool:
        """Probe the backend; never raises."""
        if not self.is_service_ready().ready:
            return False
        try:
            return await asyncio.wait_for(
                self._probe(self._get_client(), self.config), timeout=self.config.timeout
            )
        except Exception as e:
            logger.warning(f"{self.display_name} availability check failed: {e}")
            return False

    async def get_available_models(self) -> list[str]:
        """List model names, or the fallback list if the backend listing fails."""
        if not self.is_service_ready().ready:
            return []
        try:
            return await asyncio.wait_for(
                self._list_models(self._get_client(), self.config), timeout=self.config.timeout
            )
        except Exception as e:
            logger.warning(
                f"Failed to list {self.display_name} models, using fallback list: {e}"
            )
            return list(self.fallback_models)

    def adapt_messages(self, messages: list[dict[str, str]]) -> list[dict[str, str]]:
        """Map roles the backend does not understand."""
        if self.supports_tool_role:
            return messages
        return [
            {**message, "role": "user"} if message["role"] == "tool" else message
            for message in messages
        ]

    # --- Backend hooks ---

    @abstractmethod
    def _create_client(self, config: ProviderConfig) -> Any:
        """Build the backend SDK client."""

    @abstractmethod
    async def _complete(
        self, client: Any, config: ProviderConfig, messages: list[dict[str, str]]
    ) -> str:
        """Run one chat completion and return the reply text."""

    @abstractmethod
    async def _list_models(self, client: Any, config: ProviderConfig) -> list[str]:
        """Return the model names the backend offers."""

    async def _probe(self, client: Any, config: ProviderConfig) -> bool:
        await self._list_models(client, config)
        return True
