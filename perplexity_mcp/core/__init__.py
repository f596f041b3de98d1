"""Core types shared across the gateway: errors and cancellation."""

from perplexity_mcp.core.cancel import CancellationToken
from perplexity_mcp.core.errors import (
    AccessFault,
    AccessRejection,
    ConfigError,
    GatewayError,
    InvalidParamsError,
    OriginFault,
    ProtocolFault,
    TransportClosedError,
    UpstreamError,
)

__all__ = [
    "CancellationToken",
    "GatewayError",
    "ConfigError",
    "AccessRejection",
    "AccessFault",
    "OriginFault",
    "ProtocolFault",
    "TransportClosedError",
    "InvalidParamsError",
    "UpstreamError",
]
