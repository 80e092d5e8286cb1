"""Pytest configuration and shared fixtures for toolweave-server tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup and stub tool server
configurations.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from toolweave_server import create_app
from toolweave_server.config import ToolweaveSettings
from toolweave_server.tool_servers import ToolServerConfig

STUB_SERVER = Path(__file__).parent / "fixtures" / "stub_tool_server.py"


@pytest.fixture
def stub_config():
    """Factory building a ToolServerConfig that runs the stub tool server.

    Returns:
        Callable: ``stub_config(name="stub", mode="normal")``
    """

    def _make(name: str = "stub", mode: str = "normal", **kwargs) -> ToolServerConfig:
        return ToolServerConfig(
            name=name,
            command=sys.executable,
            args=(str(STUB_SERVER), mode),
            **kwargs,
        )

    return _make


@pytest.fixture
def test_settings():
    """Create test settings with one stub tool server.

    Returns:
        ToolweaveSettings: Settings instance configured for testing.
    """
    return ToolweaveSettings(
        host="127.0.0.1",
        port=8000,
        log_level="DEBUG",
        cors_origins=["*"],
        llm_provider="ollama",
        llm_model="llama3.2:latest",
        tool_servers=[
            {
                "name": "stub",
                "command": sys.executable,
                "args": [str(STUB_SERVER), "normal"],
            },
            {
                "name": "disabled",
                "command": sys.executable,
                "args": [str(STUB_SERVER), "normal"],
                "enabled": False,
            },
        ],
        handshake_timeout=10.0,
        request_timeout=5.0,
        stop_timeout=2.0,
        default_tool_server="stub",
        default_tool="echo",
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
