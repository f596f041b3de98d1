"""JSON-RPC 2.0 protocol parsing and serialization."""

import json
from typing import Any

from perplexity_mcp.core.errors import GatewayError
from perplexity_mcp.rpc.types import Request, Response


class ParseError(GatewayError):
    """Raised when a request body is not valid JSON."""


class InvalidRequestError(ParseError):
    """Raised when a body is valid JSON but not a valid JSON-RPC message."""


# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000  # Server error range: -32000 to -32099


def _parse_message(data: Any) -> Request | None:
    """Validate one decoded message.

    Returns:
        The Request (or notification), or None if the message is a
        response to a server-initiated request, which this server never
        issues and therefore ignores.

    Raises:
        InvalidRequestError: If required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise InvalidRequestError("Message must be a JSON object")

    jsonrpc = data.get("jsonrpc")
    if jsonrpc != "2.0":
        raise InvalidRequestError(f"jsonrpc must be '2.0', got: {jsonrpc!r}")

    if "method" not in data:
        if "id" in data and ("result" in data or "error" in data):
            return None
        raise InvalidRequestError("Message must have a 'method' field")

    method = data["method"]
    if not isinstance(method, str):
        raise InvalidRequestError(f"method must be a string, got: {type(method).__name__}")

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise InvalidRequestError(
            f"params must be an object, got: {type(params).__name__}"
        )

    request_id = data.get("id")
    if request_id is not None and (
        isinstance(request_id, bool) or not isinstance(request_id, (str, int))
    ):
        raise InvalidRequestError(
            f"id must be string, number, or null, got: {type(request_id).__name__}"
        )

    return Request(
        jsonrpc=jsonrpc,
        method=method,
        params=params,
        id=request_id,
    )


def parse_messages(body: str) -> tuple[list[Request], bool]:
    """Parse a request body holding one JSON-RPC message or a batch.

    Args:
        body: Raw request body text.

    Returns:
        (requests, is_batch). Requests include notifications; responses
        sent by the client are dropped.

    Raises:
        ParseError: If the body is not valid JSON.
        InvalidRequestError: If any message is structurally invalid or the
            batch is empty.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if isinstance(data, list):
        if not data:
            raise InvalidRequestError("Batch must not be empty")
        parsed = [_parse_message(item) for item in data]
        return [r for r in parsed if r is not None], True

    request = _parse_message(data)
    return ([request] if request is not None else []), False


def response_to_dict(response: Response) -> dict[str, Any]:
    """Convert a Response to its wire dict."""
    data: dict[str, Any] = {
        "jsonrpc": response.jsonrpc,
        "id": response.id,
    }

    if response.error is not None:
        data["error"] = response.error
    else:
        data["result"] = response.result

    return data


def serialize_response(response: Response) -> str:
    """Serialize a Response to a JSON line.

    Args:
        response: The Response object to serialize.

    Returns:
        A single line of JSON text (no trailing newline).
    """
    return json.dumps(response_to_dict(response), separators=(",", ":"))


def serialize_responses(responses: list[Response], is_batch: bool) -> str:
    """Serialize the responses to one exchange.

    A batch request gets an array even if it holds a single response.
    """
    if is_batch:
        return json.dumps(
            [response_to_dict(r) for r in responses], separators=(",", ":")
        )
    return serialize_response(responses[0])


def make_error_response(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any = None,
) -> Response:
    """Create an error response.

    Args:
        request_id: The id from the original request.
        code: JSON-RPC error code.
        message: Human-readable error message.
        data: Optional additional error data.

    Returns:
        A Response with the error field populated.
    """
    error: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if data is not None:
        error["data"] = data

    return Response(
        jsonrpc="2.0",
        id=request_id,
        error=error,
    )


def make_success_response(request_id: str | int | None, result: Any) -> Response:
    """Create a success response.

    Args:
        request_id: The id from the original request.
        result: The result of the method call.

    Returns:
        A Response with the result field populated.
    """
    return Response(
        jsonrpc="2.0",
        id=request_id,
        result=result,
    )
