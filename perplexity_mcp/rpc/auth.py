"""Shared-secret access control for the MCP endpoint.

Access control is opt-in: when MCP_SERVER_API_KEY is unset every request is
admitted. When it is set, clients must send it in the Authorization header,
either as "Bearer <secret>" or as the bare secret.

The "Bearer " prefix is matched case-sensitively with exactly one space;
no other schemes or normalizations are recognized.

Example usage:
    decision = evaluate(headers.get("authorization"), config.shared_secret)
    if not decision.allowed:
        status, body = fault_response(AccessFault(decision.reason))
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from perplexity_mcp.core.errors import AccessRejection

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of the access check for one request.

    Attributes:
        allowed: True if the request may proceed.
        reason: Why it was rejected, or None when allowed.
    """

    allowed: bool
    reason: AccessRejection | None = None

    @classmethod
    def allow(cls) -> AccessDecision:
        return cls(allowed=True)

    @classmethod
    def reject(cls, reason: AccessRejection) -> AccessDecision:
        return cls(allowed=False, reason=reason)


def extract_token(authorization: str) -> str:
    """Extract the credential from an Authorization header value.

    "Bearer <token>" yields the trimmed token; anything else is used
    verbatim after trimming.
    """
    if authorization.startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):].strip()
    return authorization.strip()


def validate_api_key(provided: str, expected: str) -> bool:
    """Validate a client credential using constant-time comparison.

    Args:
        provided: The credential provided by the client.
        expected: The shared secret configured on the server.

    Returns:
        True if the two strings are exactly equal, False otherwise.
    """
    if not provided or not expected:
        return False

    # Compare bytes: compare_digest rejects non-ASCII str arguments
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def evaluate(
    authorization: str | None,
    configured_secret: str | None,
) -> AccessDecision:
    """Decide whether a request is admitted.

    Must run before any transport session is constructed.

    Args:
        authorization: Raw Authorization header value, or None if absent.
        configured_secret: The server's shared secret, or None if access
            control is disabled.

    Returns:
        AccessDecision. Rejections are logged at warning level; admissions
        are not logged.
    """
    if not configured_secret:
        return AccessDecision.allow()

    if not authorization:
        logger.warning("Client attempted connection without Authorization header")
        return AccessDecision.reject(AccessRejection.MISSING_CREDENTIAL)

    if not validate_api_key(extract_token(authorization), configured_secret):
        logger.warning("Client attempted connection with invalid API key")
        return AccessDecision.reject(AccessRejection.INVALID_CREDENTIAL)

    return AccessDecision.allow()
