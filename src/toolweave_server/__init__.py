"""toolweave-server: Headless server weaving tool server results into LLM conversations.

This package provides a REST API and SSE streaming interface that lets an LLM
invoke external tool server processes during a conversation turn.
"""

__version__ = "0.1.0"

from toolweave_server.app import create_app  # noqa: E402

__all__ = ["create_app", "__version__"]
