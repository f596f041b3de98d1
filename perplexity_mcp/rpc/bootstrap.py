"""Object graph bootstrap and logging setup for the gateway server.

Usage:
    configure_server_logging(level=logging.INFO)
    endpoint, client = bootstrap_server_components(config)
    try:
        await run_http_server(endpoint, config)
    finally:
        await client.aclose()
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from perplexity_mcp import __version__
from perplexity_mcp.config.schema import ServerConfig
from perplexity_mcp.mcp.protocol import MCPServerInfo
from perplexity_mcp.mcp.server import ProtocolEndpoint
from perplexity_mcp.perplexity.client import PerplexityClient
from perplexity_mcp.perplexity.tools import build_tools

logger = logging.getLogger(__name__)

# Namespace logger configured by configure_server_logging()
ROOT_LOGGER_NAME = "perplexity_mcp"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_server_logging(
    level: int = logging.INFO,
    log_dir: Path | None = None,
) -> Path | None:
    """Configure logging for the perplexity_mcp namespace.

    Logs go to stderr. When log_dir is given they are also written to
    `{log_dir}/server.log` with rotation (max 5MB per file, 3 backups).
    Calling again replaces the previous handlers.

    Args:
        level: Logging level for all handlers.
        log_dir: Optional directory for server.log. Created if missing.

    Returns:
        Path to the server.log file, or None if file logging is off.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates on reconfigure
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    log_file: Path | None = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "server.log"
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
        root_logger.addHandler(file_handler)

    # Don't propagate to root logger
    root_logger.propagate = False

    if log_file is not None:
        logger.info("Server logging configured: %s", log_file)
    return log_file


def bootstrap_server_components(
    config: ServerConfig,
) -> tuple[ProtocolEndpoint, PerplexityClient]:
    """Create the upstream client and the protocol endpoint.

    The endpoint is the one long-lived object shared by all requests; it is
    handed to the HTTP layer explicitly rather than held in a global.

    Returns:
        (endpoint, client). The caller owns the client and must aclose() it.
    """
    client = PerplexityClient(
        config.upstream_api_key,
        base_url=config.upstream_base_url,
        timeout=config.upstream_timeout,
    )
    endpoint = ProtocolEndpoint(
        MCPServerInfo(name=config.service_name, version=__version__),
        tools=build_tools(client),
    )
    logger.debug("Registered tools: %s", ", ".join(endpoint.tool_names))
    return endpoint, client
