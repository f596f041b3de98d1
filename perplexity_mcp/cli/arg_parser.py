"""Argument parsing for the perplexity-mcp-server CLI."""

import argparse
from pathlib import Path

from perplexity_mcp import __version__


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Flags override the corresponding environment variables.
    """
    parser = argparse.ArgumentParser(
        prog="perplexity-mcp-server",
        description="Perplexity MCP server over streamable HTTP",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: $PORT or 8080)",
    )
    parser.add_argument(
        "--host",
        dest="bind_address",
        default=None,
        help="Address to bind to (default: $BIND_ADDRESS or 0.0.0.0)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable DEBUG logging",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Also write logs to LOG_DIR/server.log",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)
