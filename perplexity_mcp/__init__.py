"""Perplexity MCP server: MCP over streamable HTTP, backed by the Perplexity API."""

__version__ = "0.1.0"
