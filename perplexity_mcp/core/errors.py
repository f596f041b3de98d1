"""Typed exception hierarchy for the Perplexity MCP gateway."""

from __future__ import annotations

from enum import Enum


class GatewayError(Exception):
    """Base class for all gateway errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(GatewayError):
    """Raised for configuration issues (missing upstream key, invalid values).

    Fatal: only raised at startup, never per request.
    """


class AccessRejection(str, Enum):
    """Why the access gate rejected a request."""

    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"


class AccessFault(GatewayError):
    """Raised when a request fails the shared-secret check."""

    def __init__(self, reason: AccessRejection) -> None:
        self.reason = reason
        super().__init__(f"Access rejected: {reason.value}")


class OriginFault(GatewayError):
    """Raised when a cross-origin request comes from a disallowed origin."""

    def __init__(self, origin: str, reason: str) -> None:
        self.origin = origin
        self.reason = reason
        super().__init__(reason)


class ProtocolFault(GatewayError):
    """Raised for failures while constructing, connecting or driving a transport."""


class TransportClosedError(ProtocolFault):
    """Raised when a transport session is used outside its Active state."""


class InvalidParamsError(GatewayError):
    """Raised when method or tool parameters are invalid."""


class UpstreamError(GatewayError):
    """Raised for Perplexity API issues (HTTP errors, network issues, auth failure)."""
