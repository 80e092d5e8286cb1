"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that replace the
LLM provider with a mock before the app lifespan creates it. Tool servers
are real stub processes started by the lifespan.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolweave_server.llm import ProviderKind, ServiceStatus


@pytest.fixture(autouse=True)
def mock_llm_provider():
    """Mock the LLM provider for all integration tests.

    Patches create_provider as imported by the app module, so the lifespan
    stores this mock in app.state.
    """
    with patch("toolweave_server.app.create_provider") as mock_factory:
        provider = MagicMock()
        provider.kind = ProviderKind.OPENAI
        provider.model = "gpt-4o-mini"
        provider.is_service_ready.return_value = ServiceStatus(True, "")
        provider.chat = AsyncMock(return_value="Hello!")
        provider.is_available = AsyncMock(return_value=True)
        provider.get_available_models = AsyncMock(return_value=["gpt-4o", "gpt-4o-mini"])

        mock_factory.return_value = provider
        yield provider


def parse_sse(text: str) -> list[dict]:
    """Parse an SSE response body into ``{"event", "data"}`` dicts."""
    events = []
    normalized_text = text.replace("\r\n", "\n")
    for chunk in normalized_text.strip().split("\n\n"):
        if not chunk.strip():
            continue
        event_type = None
        event_data = None
        for part in chunk.split("\n"):
            if part.startswith("event:"):
                event_type = part.split(":", 1)[1].strip()
            elif part.startswith("data:"):
                event_data = part.split(":", 1)[1].strip()
        if event_type and event_data:
            events.append({"event": event_type, "data": json.loads(event_data)})
    return events


@pytest.fixture
def sse_parser():
    return parse_sse
