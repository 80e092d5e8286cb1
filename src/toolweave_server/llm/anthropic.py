"""Anthropic provider backed by ``anthropic.AsyncAnthropic``."""

import logging

from anthropic import AsyncAnthropic

from toolweave_server.llm.base import LLMProvider
from toolweave_server.llm.types import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API.

    The system prompt travels in the ``system`` parameter and the message list
    must alternate between user and assistant, so consecutive messages with
    the same role are merged.
    """

    kind = ProviderKind.ANTHROPIC
    display_name = "Anthropic"
    fallback_models = (
        "claude-sonnet-4-20250514",
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
        "claude-3-opus-20240229",
        "claude-3-haiku-20240307",
    )

    def _create_client(self, config: ProviderConfig) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=config.api_key, base_url=config.base_url, timeout=config.timeout
        )

    def adapt_messages(self, messages: list[dict[str, str]]) -> list[dict[str, str]]:
        adapted: list[dict[str, str]] = []
        for message in super().adapt_messages(messages):
            if adapted and adapted[-1]["role"] == message["role"]:
                adapted[-1] = {
                    "role": message["role"],
                    "content": f"{adapted[-1]['content']}\n\n{message['content']}",
                }
            else:
                adapted.append(dict(message))
        return adapted

    @staticmethod
    def split_system(messages: list[dict[str, str]]) -> tuple[str | None, list[dict[str, str]]]:
        """Separate system messages from the conversation."""
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        rest = [m for m in messages if m["role"] != "system"]
        return ("\n\n".join(system_parts) if system_parts else None), rest

    async def _complete(
        self,
        client: AsyncAnthropic,
        config: ProviderConfig,
        messages: list[dict[str, str]],
    ) -> str:
        system, conversation = self.split_system(messages)
        kwargs = {}
        if system:
            kwargs["system"] = system

        response = await client.messages.create(
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            messages=conversation,
            **kwargs,
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def _list_models(self, client: AsyncAnthropic, config: ProviderConfig) -> list[str]:
        page = await client.models.list()
        return [model.id for model in page.data]
