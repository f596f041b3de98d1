"""Pydantic models for gateway configuration validation."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Marker in allowed_origins that admits every origin
WILDCARD_ORIGIN = "*"

DEFAULT_PORT = 8080
DEFAULT_BIND_ADDRESS = "0.0.0.0"
DEFAULT_SERVICE_NAME = "perplexity-mcp-server"
DEFAULT_UPSTREAM_BASE_URL = "https://api.perplexity.ai"
DEFAULT_UPSTREAM_TIMEOUT = 300.0  # seconds
DEFAULT_MAX_BODY_SIZE = 1_048_576  # 1MB


class ServerConfig(BaseModel):
    """Process-wide server configuration.

    Built once at startup from the environment (see config.loader) and
    never mutated afterwards.

    Example:
        config = ServerConfig(upstream_api_key="pplx-...", shared_secret="s3cret")
        config.auth_enabled  # True
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    upstream_api_key: str
    """Credential for the Perplexity API. Required."""

    port: int = DEFAULT_PORT
    """TCP port to listen on."""

    bind_address: str = DEFAULT_BIND_ADDRESS
    """Interface to bind to. Defaults to all interfaces."""

    allowed_origins: tuple[str, ...] = (WILDCARD_ORIGIN,)
    """Origins permitted for cross-origin browser requests, or '*'."""

    shared_secret: str | None = None
    """Optional secret clients must present in the Authorization header."""

    service_name: str = DEFAULT_SERVICE_NAME
    """Name reported by the health endpoint and MCP serverInfo."""

    upstream_base_url: str = DEFAULT_UPSTREAM_BASE_URL
    """Base URL for Perplexity API requests."""

    upstream_timeout: float = Field(default=DEFAULT_UPSTREAM_TIMEOUT, gt=0)
    """Timeout for a single Perplexity API request, in seconds."""

    max_body_size: int = Field(default=DEFAULT_MAX_BODY_SIZE, gt=0)
    """Largest accepted request body, in bytes."""

    @field_validator("upstream_api_key")
    @classmethod
    def _require_upstream_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("upstream_api_key must not be empty")
        return v

    @field_validator("port")
    @classmethod
    def _check_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _normalize_origins(cls, v: object) -> object:
        # Accept the raw comma-separated form used by ALLOWED_ORIGINS
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple)):
            origins = tuple(o.strip() for o in v if isinstance(o, str) and o.strip())
            return origins or (WILDCARD_ORIGIN,)
        return v

    @field_validator("shared_secret")
    @classmethod
    def _empty_secret_is_none(cls, v: str | None) -> str | None:
        return v or None

    @property
    def auth_enabled(self) -> bool:
        """True if clients must present the shared secret."""
        return self.shared_secret is not None
