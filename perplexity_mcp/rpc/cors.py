"""Origin allow-list and CORS headers for browser-based MCP clients."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from perplexity_mcp.config.schema import WILDCARD_ORIGIN
from perplexity_mcp.mcp.protocol import PROTOCOL_VERSION_HEADER, SESSION_ID_HEADER

# Response headers browser clients may read
EXPOSED_HEADERS = (SESSION_ID_HEADER, PROTOCOL_VERSION_HEADER)

# Request headers browser clients may send
ALLOWED_HEADERS = ("Content-Type", SESSION_ID_HEADER, "Authorization")

ALLOWED_METHODS = ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")


@dataclass(frozen=True)
class OriginDecision:
    """Outcome of the origin check.

    Attributes:
        allowed: True if the request may proceed.
        reason: Description of the denial, or None when allowed.
    """

    allowed: bool
    reason: str | None = None


def evaluate_origin(
    origin: str | None,
    allowed_origins: Collection[str],
) -> OriginDecision:
    """Check a request's Origin header against the allow-list.

    Requests without an Origin (non-browser, same-origin, server-to-server)
    are always allowed, as is any origin when the list holds the wildcard.
    """
    if not origin:
        return OriginDecision(allowed=True)

    if WILDCARD_ORIGIN in allowed_origins:
        return OriginDecision(allowed=True)

    if origin in allowed_origins:
        return OriginDecision(allowed=True)

    return OriginDecision(
        allowed=False,
        reason=f"Origin {origin} not allowed by CORS (allowed: {', '.join(allowed_origins)})",
    )


def cors_headers(origin: str | None, preflight: bool = False) -> dict[str, str]:
    """Build CORS response headers for an allowed request.

    The request origin is reflected rather than answered with '*', so
    credentialed browser requests keep working.

    Args:
        origin: The request's Origin header, or None.
        preflight: True for an OPTIONS preflight response.
    """
    if not origin:
        return {}

    headers = {
        "Access-Control-Allow-Origin": origin,
        "Vary": "Origin",
        "Access-Control-Expose-Headers": ",".join(EXPOSED_HEADERS),
    }
    if preflight:
        headers["Access-Control-Allow-Methods"] = ",".join(ALLOWED_METHODS)
        headers["Access-Control-Allow-Headers"] = ",".join(ALLOWED_HEADERS)
    return headers
