"""CLI entry point for toolweave-server.

It can be invoked as `toolweave-server` (via the script entry point) or
`python -m toolweave_server`.
"""

import argparse
import logging
import sys

import uvicorn

from toolweave_server import __version__, create_app
from toolweave_server.config import ToolweaveSettings
from toolweave_server.llm import ProviderKind


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolweave-server",
        description="Headless server weaving tool server results into LLM conversations",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"toolweave-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via TOOLWEAVE_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via TOOLWEAVE_PORT)",
    )

    parser.add_argument(
        "--llm-provider",
        type=str,
        default=None,
        choices=[kind.value for kind in ProviderKind],
        help="LLM backend (default: ollama, can be set via TOOLWEAVE_LLM_PROVIDER)",
    )

    parser.add_argument(
        "--llm-model",
        type=str,
        default=None,
        help="Model name (default: llama3.2:latest, can be set via TOOLWEAVE_LLM_MODEL)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via TOOLWEAVE_LOG_LEVEL)",
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (uvicorn --reload)",
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> ToolweaveSettings:
    """Build settings where CLI args override environment variables."""
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.llm_provider is not None:
        settings_kwargs["llm_provider"] = args.llm_provider
    if args.llm_model is not None:
        settings_kwargs["llm_model"] = args.llm_model
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    return ToolweaveSettings(**settings_kwargs)


def main() -> None:
    """Main entry point for the toolweave-server CLI."""
    args = build_parser().parse_args()
    settings = settings_from_args(args)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    sys.exit(main())
