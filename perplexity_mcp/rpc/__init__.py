"""JSON-RPC 2.0 over HTTP for the MCP gateway.

Example usage:
    python -m perplexity_mcp  # Start HTTP server on port 8080
    curl -X POST http://localhost:8080/mcp \\
        -H "Content-Type: application/json" \\
        -H "Accept: application/json, text/event-stream" \\
        -d '{"jsonrpc":"2.0","method":"tools/list","id":1}'
"""

from perplexity_mcp.rpc.auth import AccessDecision, evaluate, extract_token, validate_api_key
from perplexity_mcp.rpc.cors import OriginDecision, cors_headers, evaluate_origin
from perplexity_mcp.rpc.errors import INTERNAL_ERROR_BODY, fault_response
from perplexity_mcp.rpc.health import HealthProbe
from perplexity_mcp.rpc.http import (
    HEALTH_PATH,
    MCP_PATH,
    HttpParseError,
    HttpRequest,
    HttpResponder,
    handle_connection,
    read_http_request,
    run_http_server,
    start_http_server,
)
from perplexity_mcp.rpc.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_ERROR,
    InvalidRequestError,
    ParseError,
    make_error_response,
    make_success_response,
    parse_messages,
    serialize_response,
)
from perplexity_mcp.rpc.types import Request, Response

__all__ = [
    # Types
    "Request",
    "Response",
    "HttpRequest",
    # Protocol functions
    "parse_messages",
    "serialize_response",
    "make_error_response",
    "make_success_response",
    # HTTP server
    "run_http_server",
    "start_http_server",
    "handle_connection",
    "read_http_request",
    "HttpResponder",
    "MCP_PATH",
    "HEALTH_PATH",
    # Error codes
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "SERVER_ERROR",
    "INTERNAL_ERROR_BODY",
    "fault_response",
    # Exceptions
    "ParseError",
    "InvalidRequestError",
    "HttpParseError",
    # Access control
    "AccessDecision",
    "evaluate",
    "extract_token",
    "validate_api_key",
    "OriginDecision",
    "evaluate_origin",
    "cors_headers",
    # Health
    "HealthProbe",
]
