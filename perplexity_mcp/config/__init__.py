"""Configuration for the gateway."""

from perplexity_mcp.config.loader import load_config
from perplexity_mcp.config.schema import WILDCARD_ORIGIN, ServerConfig

__all__ = ["ServerConfig", "WILDCARD_ORIGIN", "load_config"]
