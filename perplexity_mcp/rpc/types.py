"""Message shapes exchanged on the /mcp endpoint.

An MCP POST body holds one message or a batch. Each parsed client request
becomes a Request; every reply the endpoint writes back is a Response.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class Request:
    """A client call parsed from the POST body.

    Attributes:
        jsonrpc: Version tag; the parser only accepts "2.0".
        method: MCP method such as "initialize" or "tools/call".
        params: Named arguments, or None when the client sent none.
        id: Correlates the reply. Left as None for notifications, which
            the endpoint never answers.
    """

    jsonrpc: str
    method: str
    params: dict[str, Any] | None = None
    id: str | int | None = None


@dataclass
class Response:
    """A reply written back for one Request.

    Exactly one of result and error is set. The id echoes the request's,
    or is None when the request could not be read far enough to find it.
    """

    jsonrpc: str
    id: str | int | None
    result: Any | None = None
    error: dict[str, Any] | None = None
