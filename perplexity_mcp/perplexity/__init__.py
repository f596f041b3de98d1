"""Perplexity API client and the MCP tools built on it."""

from perplexity_mcp.perplexity.client import ChatResult, PerplexityClient, SearchResult
from perplexity_mcp.perplexity.tools import build_tools

__all__ = ["ChatResult", "PerplexityClient", "SearchResult", "build_tools"]
