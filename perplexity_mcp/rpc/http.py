"""Pure asyncio HTTP server for the MCP gateway.

This module provides a minimal HTTP/1.1 server (one request per connection)
that exposes the MCP endpoint over the streamable HTTP transport in
stateless JSON mode. It uses only asyncio stdlib for the network layer.

Routes:
    ALL /mcp      MCP messages (POST); other methods get 405 from the transport
    GET /health   Health check, no protocol involvement
    OPTIONS *     CORS preflight

Request pipeline:
    1. Parse HTTP request
    2. Origin check (rejects disallowed cross-origin requests)
    3. CORS preflight / routing
    4. Access control (shared secret) for /mcp
    5. Fresh TransportSession, close hook, connect, handle

Example usage:
    endpoint = build_endpoint(config, client)
    await run_http_server(endpoint, config)
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from perplexity_mcp.core.cancel import CancellationToken
from perplexity_mcp.core.errors import AccessFault, GatewayError, OriginFault
from perplexity_mcp.mcp.transport import TransportSession
from perplexity_mcp.rpc.auth import evaluate
from perplexity_mcp.rpc.cors import cors_headers, evaluate_origin
from perplexity_mcp.rpc.errors import INTERNAL_ERROR_BODY, fault_response
from perplexity_mcp.rpc.health import HealthProbe
from perplexity_mcp.rpc.protocol import (
    PARSE_ERROR,
    make_error_response,
    serialize_response,
)

if TYPE_CHECKING:
    from perplexity_mcp.config.schema import ServerConfig
    from perplexity_mcp.mcp.server import ProtocolEndpoint

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
HEALTH_PATH = "/health"

# HTTP header limits (DoS protection)
MAX_HEADERS_COUNT = 128  # Max number of headers
MAX_HEADER_NAME_LEN = 1024  # Max header name length (bytes)
MAX_HEADER_VALUE_LEN = 8192  # Max header value length (bytes)
MAX_TOTAL_HEADERS_SIZE = 32 * 1024  # 32KB total header size limit
MAX_REQUEST_LINE_LEN = 8192  # Max request line length
READ_TIMEOUT = 30.0  # seconds

STATUS_MESSAGES = {
    200: "OK",
    202: "Accepted",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    415: "Unsupported Media Type",
    500: "Internal Server Error",
}


@dataclass
class HttpRequest:
    """Parsed HTTP request.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: Request path without query string (e.g., "/mcp")
        headers: Dict of lowercase header names to values
        body: Request body as string
    """

    method: str
    path: str
    headers: dict[str, str]
    body: str


class HttpParseError(GatewayError):
    """Raised when HTTP request parsing fails."""


class ResponseAlreadySentError(GatewayError):
    """Raised when a second response is attempted on one exchange."""


async def _readline(reader: asyncio.StreamReader, what: str) -> bytes:
    try:
        return await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT)
    except TimeoutError:
        raise HttpParseError(f"{what} timeout") from None


async def read_http_request(
    reader: asyncio.StreamReader,
    max_body_size: int,
) -> HttpRequest:
    """Read and parse an HTTP request from the stream.

    Args:
        reader: The asyncio StreamReader to read from.
        max_body_size: Largest accepted Content-Length, in bytes.

    Returns:
        Parsed HttpRequest object.

    Raises:
        HttpParseError: If the request is malformed or too large.
    """
    request_line = await _readline(reader, "Request")
    if not request_line:
        raise HttpParseError("Empty request")

    if len(request_line) > MAX_REQUEST_LINE_LEN:
        raise HttpParseError(
            f"Request line too long: {len(request_line)} > {MAX_REQUEST_LINE_LEN}"
        )

    # Parse request line: "POST /mcp HTTP/1.1\r\n"
    try:
        request_line_str = request_line.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise HttpParseError(f"Invalid request encoding: {e}") from e
    parts = request_line_str.split(" ")
    if len(parts) != 3:
        raise HttpParseError(f"Invalid request line: {request_line_str}")
    method, target, _version = parts
    path = target.split("?", 1)[0]

    headers: dict[str, str] = {}
    total_headers_size = 0

    while True:
        header_line = await _readline(reader, "Header read")
        if not header_line or header_line in (b"\r\n", b"\n"):
            break  # End of headers

        total_headers_size += len(header_line)
        if total_headers_size > MAX_TOTAL_HEADERS_SIZE:
            raise HttpParseError(
                f"Total headers size exceeds limit: {total_headers_size} > {MAX_TOTAL_HEADERS_SIZE}"
            )

        try:
            header_str = header_line.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise HttpParseError(f"Invalid header encoding: {e}") from e

        if ":" not in header_str:
            continue  # Skip malformed headers

        name, value = header_str.split(":", 1)
        name = name.strip()
        value = value.strip()

        if len(name) > MAX_HEADER_NAME_LEN:
            raise HttpParseError(
                f"Header name too long: {len(name)} > {MAX_HEADER_NAME_LEN}"
            )
        if len(value) > MAX_HEADER_VALUE_LEN:
            raise HttpParseError(
                f"Header value too long: {len(value)} > {MAX_HEADER_VALUE_LEN}"
            )
        if len(headers) >= MAX_HEADERS_COUNT:
            raise HttpParseError(
                f"Too many headers: exceeds limit of {MAX_HEADERS_COUNT}"
            )

        headers[name.lower()] = value

    content_length_str = headers.get("content-length", "0")
    try:
        content_length = int(content_length_str)
    except ValueError as e:
        raise HttpParseError(f"Invalid Content-Length: {content_length_str}") from e
    if content_length < 0:
        raise HttpParseError(f"Invalid Content-Length: {content_length_str}")

    if content_length > max_body_size:
        raise HttpParseError(
            f"Request body too large: {content_length} > {max_body_size}"
        )

    body = ""
    if content_length > 0:
        try:
            body_bytes = await asyncio.wait_for(
                reader.readexactly(content_length),
                timeout=READ_TIMEOUT,
            )
            body = body_bytes.decode("utf-8")
        except TimeoutError:
            raise HttpParseError("Body read timeout") from None
        except asyncio.IncompleteReadError as e:
            raise HttpParseError(
                f"Incomplete body: expected {content_length}, got {len(e.partial)}"
            ) from e
        except UnicodeDecodeError as e:
            raise HttpParseError(f"Invalid body encoding: {e}") from e

    return HttpRequest(method=method, path=path, headers=headers, body=body)


class HttpResponder:
    """Writes the single HTTP response of one exchange.

    Tracks whether any part of a response has been written, so callers can
    tell whether an error response is still possible.

    Attributes:
        extra_headers: Headers added to every response (e.g. CORS).
    """

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer
        self._headers_sent = False
        self.extra_headers: dict[str, str] = {}

    @property
    def headers_sent(self) -> bool:
        """True once the response has begun transmission."""
        return self._headers_sent

    async def send(
        self,
        status: int,
        body: str = "",
        headers: dict[str, str] | None = None,
        content_type: str = "application/json",
        include_body: bool = True,
    ) -> None:
        """Send the response: status line and headers, then the body.

        Args:
            status: HTTP status code.
            body: Response body as string.
            headers: Additional response headers.
            content_type: Content-Type header value (omitted for empty bodies).
            include_body: False for HEAD requests; Content-Length still
                describes the full body.

        Raises:
            ResponseAlreadySentError: If a response was already started.
        """
        if self._headers_sent:
            raise ResponseAlreadySentError("Response already sent for this exchange")
        self._headers_sent = True

        body_bytes = body.encode("utf-8")
        lines = [f"HTTP/1.1 {status} {STATUS_MESSAGES.get(status, 'Unknown')}"]
        if body_bytes:
            lines.append(f"Content-Type: {content_type}; charset=utf-8")
        lines.append(f"Content-Length: {len(body_bytes)}")
        lines.append("Connection: close")
        for name, value in {**self.extra_headers, **(headers or {})}.items():
            lines.append(f"{name}: {value}")
        lines.extend(["", ""])

        self._writer.write("\r\n".join(lines).encode("utf-8"))
        await self._writer.drain()

        if body_bytes and include_body:
            self._writer.write(body_bytes)
            await self._writer.drain()

    async def send_json(self, status: int, data: Any, **kwargs: Any) -> None:
        """Send a JSON body."""
        await self.send(status, json.dumps(data, separators=(",", ":")), **kwargs)


async def send_fault(responder: HttpResponder, fault: Exception) -> None:
    """Send the response mapped to a fault."""
    status, body = fault_response(fault)
    if body is None:
        await responder.send(status)
    else:
        await responder.send_json(status, body)


async def watch_disconnect(
    reader: asyncio.StreamReader,
    connection: CancellationToken,
) -> None:
    """Cancel the connection token when the peer closes its side.

    Runs while a request is being handled. Any bytes received after the
    request are discarded (one request per connection).
    """
    try:
        while await reader.read(4096):
            pass
    except (ConnectionError, OSError) as e:
        logger.debug("Connection error while watching for disconnect: %s", e)
    connection.cancel()


async def handle_mcp_request(
    http_request: HttpRequest,
    responder: HttpResponder,
    endpoint: ProtocolEndpoint,
    shared_secret: str | None,
    connection: CancellationToken,
) -> None:
    """Handle one request to /mcp.

    Access control runs first; a rejected request never allocates a
    transport session. Admitted requests get a fresh session whose close
    hook is registered on the connection before it is connected, so a
    disconnect during any later step still closes it.

    Args:
        http_request: The parsed HTTP request.
        responder: Writer for this exchange's response.
        endpoint: The long-lived protocol endpoint.
        shared_secret: Configured shared secret, or None if disabled.
        connection: Token cancelled when the client disconnects.
    """
    decision = evaluate(http_request.headers.get("authorization"), shared_secret)
    if not decision.allowed:
        assert decision.reason is not None
        await send_fault(responder, AccessFault(decision.reason))
        return

    try:
        session = TransportSession()
        connection.on_cancel(session.close)
        await endpoint.connect(session)
        await session.handle_request(http_request, responder)
    except Exception as e:
        logger.error("Error handling MCP request: %s", e, exc_info=True)
        if responder.headers_sent:
            # A second response would corrupt the stream; leave it logged
            return
        if connection.is_cancelled:
            logger.debug("Client disconnected; not sending error response")
            return
        await send_fault(responder, e)


async def handle_connection(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    endpoint: ProtocolEndpoint,
    config: ServerConfig,
    health: HealthProbe,
) -> None:
    """Handle a single HTTP connection.

    Args:
        reader: The asyncio StreamReader for the connection.
        writer: The asyncio StreamWriter for the connection.
        endpoint: The long-lived protocol endpoint.
        config: Server configuration (origins, shared secret, limits).
        health: Health check responder.
    """
    responder = HttpResponder(writer)
    connection = CancellationToken()
    watcher: asyncio.Task[None] | None = None

    try:
        # Layer 1: Parse HTTP request
        try:
            http_request = await read_http_request(reader, config.max_body_size)
        except HttpParseError as e:
            error_response = make_error_response(None, PARSE_ERROR, e.message)
            await responder.send(400, serialize_response(error_response))
            return

        watcher = asyncio.create_task(watch_disconnect(reader, connection))

        # Layer 2: Origin check
        origin = http_request.headers.get("origin")
        origin_decision = evaluate_origin(origin, config.allowed_origins)
        if not origin_decision.allowed:
            assert origin is not None and origin_decision.reason is not None
            logger.warning("Rejected request: %s", origin_decision.reason)
            await send_fault(responder, OriginFault(origin, origin_decision.reason))
            return
        responder.extra_headers.update(cors_headers(origin))

        # Layer 3: Preflight and routing
        if http_request.method == "OPTIONS":
            await responder.send(204, headers=cors_headers(origin, preflight=True))
            return

        if http_request.path == HEALTH_PATH and http_request.method in ("GET", "HEAD"):
            await responder.send_json(
                200, health.status(), include_body=http_request.method == "GET"
            )
            return

        if http_request.path == MCP_PATH:
            # Layers 4-5: access control and transport session
            await handle_mcp_request(
                http_request, responder, endpoint, config.shared_secret, connection
            )
            return

        await responder.send_json(
            404, {"error": f"Cannot {http_request.method} {http_request.path}"}
        )

    except Exception as e:
        # Catch-all for any unexpected errors
        logger.error("Unexpected error handling connection: %s", e, exc_info=True)
        if not responder.headers_sent:
            try:
                await responder.send_json(500, INTERNAL_ERROR_BODY)
            except Exception as send_err:
                logger.debug(
                    "Failed to send error response (client disconnected?): %s", send_err
                )

    finally:
        if watcher is not None:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
        # The connection is done either way; fires any pending close hooks
        connection.cancel()
        try:
            writer.close()
            await writer.wait_closed()
        except Exception as close_err:
            logger.debug("Connection close failed (already closed?): %s", close_err)


async def start_http_server(
    endpoint: ProtocolEndpoint,
    config: ServerConfig,
    host: str | None = None,
    port: int | None = None,
) -> asyncio.Server:
    """Bind the HTTP server and start accepting connections.

    Args:
        endpoint: The long-lived protocol endpoint shared by all requests.
        config: Server configuration.
        host: Bind address override. Defaults to config.bind_address.
        port: Port override (0 picks a free port). Defaults to config.port.

    Returns:
        The listening asyncio.Server.

    Raises:
        OSError: If the address cannot be bound.
    """
    health = HealthProbe(config.service_name, config.auth_enabled)

    async def client_handler(
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        await handle_connection(reader, writer, endpoint, config, health)

    return await asyncio.start_server(
        client_handler,
        host=host if host is not None else config.bind_address,
        port=port if port is not None else config.port,
    )


async def run_http_server(
    endpoint: ProtocolEndpoint,
    config: ServerConfig,
    started_event: asyncio.Event | None = None,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        endpoint: The long-lived protocol endpoint shared by all requests.
        config: Server configuration.
        started_event: Optional event set once the server is listening.
    """
    server = await start_http_server(endpoint, config)

    if started_event:
        started_event.set()

    logger.info(
        "Perplexity MCP Server listening on http://%s:%s%s",
        config.bind_address,
        config.port,
        MCP_PATH,
    )
    if config.auth_enabled:
        logger.info(
            "Server Access Control: ENABLED (Clients must provide Authorization header)"
        )
    else:
        logger.warning("Server Access Control: DISABLED (Publicly accessible)")

    async with server:
        try:
            await server.serve_forever()
        finally:
            logger.info("HTTP server stopped")
