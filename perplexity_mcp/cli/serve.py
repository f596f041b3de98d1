"""HTTP server entry point.

Runs the gateway as an MCP server over streamable HTTP. Each POST to /mcp
is a self-contained JSON-RPC exchange; there is no MCP session continuity.

Example:
    PERPLEXITY_API_KEY=pplx-... perplexity-mcp-server --port 8080

    curl -X POST http://localhost:8080/mcp \\
        -H "Content-Type: application/json" \\
        -H "Accept: application/json, text/event-stream" \\
        -H "Authorization: Bearer $MCP_SERVER_API_KEY" \\
        -d '{"jsonrpc":"2.0","method":"tools/list","id":1}'
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from perplexity_mcp.cli.arg_parser import parse_args
from perplexity_mcp.config.loader import load_config
from perplexity_mcp.config.schema import ServerConfig
from perplexity_mcp.core.errors import ConfigError
from perplexity_mcp.rpc.bootstrap import bootstrap_server_components, configure_server_logging
from perplexity_mcp.rpc.http import run_http_server

logger = logging.getLogger(__name__)


async def run_serve(config: ServerConfig) -> None:
    """Run the server until cancelled, then release the upstream client.

    Raises:
        OSError: If the listen address cannot be bound.
    """
    endpoint, client = bootstrap_server_components(config)
    try:
        await run_http_server(endpoint, config)
    finally:
        await client.aclose()


def main(argv: list[str] | None = None) -> None:
    """Console entry point.

    Exits with status 1 before binding any port if the configuration is
    invalid (e.g. PERPLEXITY_API_KEY missing), and with status 1 if the
    server cannot bind.
    """
    args = parse_args(argv)

    # Load .env file if present
    load_dotenv()

    configure_server_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_dir=args.log_dir,
    )

    try:
        config = load_config(port=args.port, bind_address=args.bind_address)
    except ConfigError as e:
        logger.error("%s", e.message)
        sys.exit(1)

    try:
        asyncio.run(run_serve(config))
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except OSError as e:
        logger.error("Server error: %s", e)
        sys.exit(1)
