"""Per-request MCP transport over HTTP.

A TransportSession binds exactly one HTTP exchange to the ProtocolEndpoint.
It is stateless in the MCP sense: no session id is issued, every POST is a
self-contained exchange, and responses are returned as a JSON body rather
than an SSE stream.

Lifecycle:
    OPEN    constructed, not yet connected
    ACTIVE  connected to one endpoint, processing one exchange
    CLOSED  terminal; reached on completion or when the client disconnects

Usage (from the HTTP handler):
    session = TransportSession()
    connection.on_cancel(session.close)   # before anything else
    await endpoint.connect(session)
    await session.handle_request(http_request, responder)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from perplexity_mcp.core.errors import TransportClosedError
from perplexity_mcp.mcp.protocol import (
    PROTOCOL_VERSION_HEADER,
    SUPPORTED_PROTOCOL_VERSIONS,
)
from perplexity_mcp.rpc.protocol import (
    INVALID_REQUEST,
    PARSE_ERROR,
    SERVER_ERROR,
    InvalidRequestError,
    ParseError,
    make_error_response,
    parse_messages,
    serialize_response,
    serialize_responses,
)

if TYPE_CHECKING:
    from perplexity_mcp.mcp.server import ProtocolEndpoint
    from perplexity_mcp.rpc.http import HttpRequest, HttpResponder

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of a TransportSession."""

    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class TransportResponse:
    """HTTP response produced by one exchange.

    Attributes:
        status: HTTP status code.
        body: Response body (empty for 202 Accepted).
        headers: Extra response headers.
    """

    status: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)


def _error(status: int, code: int, message: str, **headers: str) -> TransportResponse:
    return TransportResponse(
        status=status,
        body=serialize_response(make_error_response(None, code, message)),
        headers=dict(headers),
    )


def _accepts_json(accept: str | None) -> bool:
    if not accept:
        return True
    media_types = {part.split(";", 1)[0].strip().lower() for part in accept.split(",")}
    return bool(media_types & {"application/json", "application/*", "*/*"})


class TransportSession:
    """Single-use channel between one HTTP exchange and the ProtocolEndpoint."""

    def __init__(self) -> None:
        self._state = SessionState.OPEN
        self._endpoint: ProtocolEndpoint | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    @property
    def endpoint(self) -> ProtocolEndpoint | None:
        """The endpoint this session is connected to, if any."""
        return self._endpoint

    def bind(self, endpoint: ProtocolEndpoint) -> None:
        """Connect this session to an endpoint (OPEN -> ACTIVE).

        Called by ProtocolEndpoint.connect().

        Raises:
            TransportClosedError: If the session was already connected or
                closed. Sessions are never reused.
        """
        if self._state is not SessionState.OPEN:
            raise TransportClosedError(
                f"Cannot connect transport session in state {self._state.value}"
            )
        self._endpoint = endpoint
        self._state = SessionState.ACTIVE

    def close(self) -> None:
        """Close the session. Safe to call any number of times."""
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        logger.debug("Transport session closed")

    async def handle_request(
        self,
        http_request: HttpRequest,
        responder: HttpResponder,
    ) -> None:
        """Process one HTTP exchange and write its response.

        If the client disconnected while the endpoint was working, the
        session is already closed and no response is written.

        Raises:
            TransportClosedError: If the session is not ACTIVE.
        """
        if not self.is_active:
            raise TransportClosedError(
                f"Cannot handle request on transport session in state {self._state.value}"
            )

        try:
            response = await self._process(http_request)

            if self.is_closed:
                logger.debug("Client disconnected before response was sent; discarding")
                return

            await responder.send(response.status, response.body, headers=response.headers)
        finally:
            self.close()

    async def _process(self, http_request: HttpRequest) -> TransportResponse:
        if http_request.method != "POST":
            return _error(405, SERVER_ERROR, "Method not allowed.", Allow="POST")

        headers = http_request.headers

        if not _accepts_json(headers.get("accept")):
            return _error(
                406, SERVER_ERROR, "Not Acceptable: Client must accept application/json"
            )

        content_type = headers.get("content-type", "")
        if content_type.split(";", 1)[0].strip().lower() != "application/json":
            return _error(
                415,
                SERVER_ERROR,
                "Unsupported Media Type: Content-Type must be application/json",
            )

        protocol_version = headers.get(PROTOCOL_VERSION_HEADER)
        if protocol_version and protocol_version not in SUPPORTED_PROTOCOL_VERSIONS:
            return _error(
                400,
                SERVER_ERROR,
                f"Bad Request: Unsupported protocol version: {protocol_version} "
                f"(supported versions: {', '.join(SUPPORTED_PROTOCOL_VERSIONS)})",
            )

        try:
            requests, is_batch = parse_messages(http_request.body)
        except InvalidRequestError as e:
            return _error(400, INVALID_REQUEST, f"Invalid Request: {e.message}")
        except ParseError as e:
            return _error(400, PARSE_ERROR, f"Parse error: {e.message}")

        if not any(r.id is not None for r in requests):
            # Only notifications (or client responses): acknowledge, no body
            if requests:
                assert self._endpoint is not None
                await self._endpoint.handle_exchange(self, requests)
            return TransportResponse(status=202)

        assert self._endpoint is not None
        responses = await self._endpoint.handle_exchange(self, requests)
        return TransportResponse(
            status=200,
            body=serialize_responses(responses, is_batch),
        )
