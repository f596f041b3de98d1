"""Configuration loading from the process environment with fail-fast behavior.

Environment variables:
    PERPLEXITY_API_KEY     Upstream credential (required).
    MCP_SERVER_API_KEY     Shared secret clients must present (optional).
    PORT                   Listen port (default 8080).
    BIND_ADDRESS           Bind address (default 0.0.0.0).
    ALLOWED_ORIGINS        Comma-separated origins, or '*' (default '*').
    PERPLEXITY_BASE_URL    Upstream base URL (default https://api.perplexity.ai).
    PERPLEXITY_TIMEOUT_MS  Upstream request timeout in milliseconds (default 300000).

Empty values are treated as unset.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from perplexity_mcp.config.schema import ServerConfig
from perplexity_mcp.core.errors import ConfigError

logger = logging.getLogger(__name__)

UPSTREAM_KEY_ENV = "PERPLEXITY_API_KEY"
SHARED_SECRET_ENV = "MCP_SERVER_API_KEY"

# Environment variable -> ServerConfig field
_ENV_FIELDS: dict[str, str] = {
    SHARED_SECRET_ENV: "shared_secret",
    "PORT": "port",
    "BIND_ADDRESS": "bind_address",
    "ALLOWED_ORIGINS": "allowed_origins",
    "PERPLEXITY_BASE_URL": "upstream_base_url",
}


def load_config(
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> ServerConfig:
    """Build the ServerConfig from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.
        **overrides: Field values that win over the environment (e.g. CLI
            flags). None values are ignored.

    Returns:
        Validated, immutable ServerConfig.

    Raises:
        ConfigError: If PERPLEXITY_API_KEY is missing or any value is invalid.
    """
    env = os.environ if environ is None else environ

    upstream_key = env.get(UPSTREAM_KEY_ENV, "")
    if not upstream_key:
        raise ConfigError(f"{UPSTREAM_KEY_ENV} environment variable is required")

    values: dict[str, Any] = {"upstream_api_key": upstream_key}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = env.get(env_name, "")
        if raw:
            values[field_name] = raw

    timeout_ms = env.get("PERPLEXITY_TIMEOUT_MS", "")
    if timeout_ms:
        try:
            values["upstream_timeout"] = int(timeout_ms) / 1000
        except ValueError as e:
            raise ConfigError(f"Invalid PERPLEXITY_TIMEOUT_MS: {timeout_ms!r}") from e

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = ServerConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed: {e}") from e

    logger.debug(
        "Loaded config: bind=%s:%s origins=%s auth_enabled=%s",
        config.bind_address,
        config.port,
        ",".join(config.allowed_origins),
        config.auth_enabled,
    )
    return config
