"""Mapping from gateway faults to HTTP responses.

Every user-visible failure of a request goes through fault_response(), so
the status codes and bodies clients see are defined in one table.
"""

from __future__ import annotations

from typing import Any

from perplexity_mcp.core.errors import (
    AccessFault,
    AccessRejection,
    GatewayError,
    OriginFault,
    ProtocolFault,
)
from perplexity_mcp.rpc.protocol import INTERNAL_ERROR

# Fixed body for internal faults; never carries exception details
INTERNAL_ERROR_BODY: dict[str, Any] = {
    "jsonrpc": "2.0",
    "error": {"code": INTERNAL_ERROR, "message": "Internal server error"},
    "id": None,
}

# Fault key -> (HTTP status, JSON body or None for an empty body)
FAULT_RESPONSES: dict[Any, tuple[int, dict[str, Any] | None]] = {
    AccessRejection.MISSING_CREDENTIAL: (
        401,
        {"error": "Unauthorized: Missing Authorization header"},
    ),
    AccessRejection.INVALID_CREDENTIAL: (
        403,
        {"error": "Forbidden: Invalid API Key"},
    ),
    # Browsers surface this as a CORS failure; no CORS headers, no body
    OriginFault: (403, None),
    ProtocolFault: (500, INTERNAL_ERROR_BODY),
}


def _fault_key(fault: BaseException) -> Any:
    if isinstance(fault, AccessFault):
        return fault.reason
    for fault_type in (OriginFault, ProtocolFault):
        if isinstance(fault, fault_type):
            return fault_type
    # Anything unclassified is an internal fault
    return ProtocolFault


def fault_response(fault: GatewayError | Exception) -> tuple[int, dict[str, Any] | None]:
    """Look up the HTTP status and body for a fault.

    Args:
        fault: The fault raised while handling a request. Exceptions outside
            the gateway taxonomy are treated as protocol faults.

    Returns:
        (status, body). body is None when the response has no body.
    """
    return FAULT_RESPONSES[_fault_key(fault)]
