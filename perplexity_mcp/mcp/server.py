"""Long-lived MCP message handler.

The ProtocolEndpoint is constructed once at startup and shared by every
request. Its only state is the tool registry, fixed after construction, so
concurrent exchanges never interfere: each call is parameterized solely by
the session and messages passed to it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import jsonschema

from perplexity_mcp.core.errors import GatewayError, InvalidParamsError, TransportClosedError
from perplexity_mcp.mcp.protocol import (
    MCPServerInfo,
    MCPTool,
    MCPToolResult,
    negotiate_protocol_version,
)
from perplexity_mcp.rpc.dispatch_core import Handler, dispatch_request

if TYPE_CHECKING:
    from perplexity_mcp.mcp.transport import TransportSession
    from perplexity_mcp.rpc.types import Request, Response

logger = logging.getLogger(__name__)


def _format_validation_error(error: jsonschema.ValidationError, tool_name: str) -> str:
    """Format a jsonschema ValidationError into a readable message."""
    path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else ""
    if path:
        return f"Invalid arguments for tool {tool_name}: parameter '{path}' {error.message}"
    return f"Invalid arguments for tool {tool_name}: {error.message}"


class ProtocolEndpoint:
    """MCP server exposing a fixed set of tools.

    Handles: initialize, ping, tools/list, tools/call and the
    notifications/initialized and notifications/cancelled notifications.

    Example:
        endpoint = ProtocolEndpoint(MCPServerInfo("perplexity-mcp-server", "0.1.0"))
        endpoint.register_tool(MCPTool(name="echo", description="...", handler=echo))

        session = TransportSession()
        await endpoint.connect(session)
        responses = await endpoint.handle_exchange(session, requests)
    """

    def __init__(
        self,
        server_info: MCPServerInfo,
        tools: list[MCPTool] | None = None,
        instructions: str | None = None,
    ) -> None:
        self._server_info = server_info
        self._instructions = instructions
        self._tools: dict[str, MCPTool] = {}
        for tool in tools or []:
            self.register_tool(tool)

        self._handlers: dict[str, Handler] = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
            "notifications/initialized": self._handle_notification,
            "notifications/cancelled": self._handle_notification,
        }

    @property
    def server_info(self) -> MCPServerInfo:
        return self._server_info

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def register_tool(self, tool: MCPTool) -> None:
        """Add a tool to the registry. Call only during startup.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    async def connect(self, session: TransportSession) -> None:
        """Connect a fresh transport session to this endpoint.

        Raises:
            TransportClosedError: If the session is not freshly constructed.
        """
        session.bind(self)
        logger.debug("Transport session connected")

    async def handle_exchange(
        self,
        session: TransportSession,
        requests: list[Request],
    ) -> list[Response]:
        """Process the messages of one exchange, in order.

        Args:
            session: The ACTIVE session the messages arrived on.
            requests: Parsed requests and notifications.

        Returns:
            Responses for the requests that carry an id.

        Raises:
            TransportClosedError: If the session is not connected to this
                endpoint or is no longer active.
        """
        if session.endpoint is not self or not session.is_active:
            raise TransportClosedError("Exchange requires an active session on this endpoint")

        responses: list[Response] = []
        for request in requests:
            response = await dispatch_request(request, self._handlers, "MCP method")
            if response is not None:
                responses.append(response)
        return responses

    async def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {
            "protocolVersion": negotiate_protocol_version(params.get("protocolVersion")),
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": self._server_info.to_dict(),
        }
        if self._instructions:
            result["instructions"] = self._instructions
        return result

    async def _handle_ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _handle_tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": [tool.to_dict() for tool in self._tools.values()]}

    async def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidParamsError("tools/call requires a 'name' string")

        tool = self._tools.get(name)
        if tool is None:
            raise InvalidParamsError(f"Tool {name} not found")

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("'arguments' must be an object")

        try:
            jsonschema.validate(arguments, tool.input_schema)
        except jsonschema.ValidationError as e:
            raise InvalidParamsError(_format_validation_error(e, name)) from e

        try:
            text = await tool.handler(arguments)
        except GatewayError as e:
            logger.warning("Tool %s failed: %s", name, e.message)
            return MCPToolResult.text(f"Error: {e.message}", is_error=True).to_dict()
        except Exception as e:
            logger.error("Unexpected error in tool %s: %s", name, e, exc_info=True)
            return MCPToolResult.text(
                f"Error: unexpected failure in {name}", is_error=True
            ).to_dict()

        return MCPToolResult.text(text).to_dict()

    async def _handle_notification(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}
