"""MCP (Model Context Protocol) server side: protocol types, endpoint, transport."""

from perplexity_mcp.mcp.protocol import (
    PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    MCPServerInfo,
    MCPTool,
    MCPToolResult,
)
from perplexity_mcp.mcp.server import ProtocolEndpoint
from perplexity_mcp.mcp.transport import SessionState, TransportResponse, TransportSession

__all__ = [
    "PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "MCPServerInfo",
    "MCPTool",
    "MCPToolResult",
    "ProtocolEndpoint",
    "SessionState",
    "TransportResponse",
    "TransportSession",
]
