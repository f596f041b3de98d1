"""MCP protocol types.

Defines the data structures specific to MCP (Model Context Protocol),
which builds on JSON-RPC 2.0 with additional semantics for tools.

Protocol reference: https://modelcontextprotocol.io/specification/2025-11-25
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

# MCP protocol version we prefer
PROTOCOL_VERSION = "2025-11-25"

# Versions a client may request during initialize or send in the
# mcp-protocol-version header
SUPPORTED_PROTOCOL_VERSIONS = (
    "2025-11-25",
    "2025-06-18",
    "2025-03-26",
    "2024-11-05",
    "2024-10-07",
)

# Header names used by the streamable HTTP transport
PROTOCOL_VERSION_HEADER = "mcp-protocol-version"
SESSION_ID_HEADER = "mcp-session-id"

# Tool handlers receive validated arguments and return the result text
ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass
class MCPToolResult:
    """Result of a tool invocation.

    MCP returns results as a list of content items (text, images, etc).

    Attributes:
        content: List of content items from the tool.
        is_error: Whether the result represents an error.
    """

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "MCPToolResult":
        """Create a result holding a single text item."""
        return cls(content=[{"type": "text", "text": text}], is_error=is_error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for MCP protocol."""
        return {"content": self.content, "isError": self.is_error}


@dataclass
class MCPTool:
    """Tool exposed by this server.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        handler: Coroutine implementing the tool.
        input_schema: JSON Schema describing the tool's parameters.
        title: Human-readable title for display.
        annotations: Behavior hints for clients (readOnlyHint, etc).
    """

    name: str
    description: str
    handler: ToolHandler
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    title: str | None = None
    annotations: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tools/list wire format."""
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.title is not None:
            data["title"] = self.title
        if self.annotations is not None:
            data["annotations"] = self.annotations
        return data


@dataclass
class MCPServerInfo:
    """Server information returned from initialize.

    Attributes:
        name: Server name.
        version: Server version.
    """

    name: str
    version: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dict for MCP protocol."""
        return {"name": self.name, "version": self.version}


def negotiate_protocol_version(requested: Any) -> str:
    """Pick the protocol version to answer an initialize request with.

    Echoes the client's version when supported, else offers our latest.
    """
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return PROTOCOL_VERSION
