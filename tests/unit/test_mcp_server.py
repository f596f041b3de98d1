"""Unit tests for ProtocolEndpoint method handling."""

import pytest

from perplexity_mcp.core.errors import TransportClosedError, UpstreamError
from perplexity_mcp.mcp.protocol import PROTOCOL_VERSION, MCPServerInfo, MCPTool
from perplexity_mcp.mcp.server import ProtocolEndpoint
from perplexity_mcp.mcp.transport import TransportSession
from perplexity_mcp.rpc.types import Request

ECHO_SCHEMA = {
    "type": "object",
    "properties": {"text": {"type": "string"}},
    "required": ["text"],
}


async def echo(arguments):
    return arguments["text"]


async def upstream_down(arguments):
    raise UpstreamError("Perplexity API error: 503 Service Unavailable")


async def crash(arguments):
    raise RuntimeError("kaboom")


@pytest.fixture
def endpoint():
    return ProtocolEndpoint(
        MCPServerInfo("test-server", "1.2.3"),
        tools=[
            MCPTool(name="echo", description="Echo text", handler=echo,
                    input_schema=ECHO_SCHEMA, title="Echo"),
            MCPTool(name="down", description="Always fails", handler=upstream_down),
            MCPTool(name="crash", description="Raises", handler=crash),
        ],
        instructions="Use the tools.",
    )


async def call(endpoint, method, params=None, request_id=1):
    session = TransportSession()
    await endpoint.connect(session)
    responses = await endpoint.handle_exchange(
        session, [Request(jsonrpc="2.0", method=method, params=params, id=request_id)]
    )
    session.close()
    return responses


class TestRegistry:
    """Tests for tool registration."""

    def test_tool_names_in_registration_order(self, endpoint):
        """tool_names keeps registration order."""
        assert endpoint.tool_names == ["echo", "down", "crash"]

    def test_duplicate_tool_rejected(self, endpoint):
        """Registering a name twice is an error."""
        with pytest.raises(ValueError):
            endpoint.register_tool(MCPTool(name="echo", description="again", handler=echo))


class TestHandleExchange:
    """Tests for ProtocolEndpoint.handle_exchange()."""

    async def test_requires_connected_session(self, endpoint):
        """An unconnected session is refused."""
        session = TransportSession()

        with pytest.raises(TransportClosedError):
            await endpoint.handle_exchange(session, [])

    async def test_rejects_session_of_other_endpoint(self, endpoint):
        """A session bound elsewhere is refused."""
        other = ProtocolEndpoint(MCPServerInfo("other", "0"))
        session = TransportSession()
        await other.connect(session)

        with pytest.raises(TransportClosedError):
            await endpoint.handle_exchange(session, [])

    async def test_rejects_closed_session(self, endpoint):
        """A closed session is refused."""
        session = TransportSession()
        await endpoint.connect(session)
        session.close()

        with pytest.raises(TransportClosedError):
            await endpoint.handle_exchange(session, [])

    async def test_notifications_produce_no_responses(self, endpoint):
        """Known and unknown notifications are silent."""
        session = TransportSession()
        await endpoint.connect(session)

        responses = await endpoint.handle_exchange(session, [
            Request(jsonrpc="2.0", method="notifications/initialized"),
            Request(jsonrpc="2.0", method="notifications/unknown"),
        ])

        assert responses == []

    async def test_concurrent_sessions_are_independent(self, endpoint):
        """Closing one session doesn't affect another."""
        first = TransportSession()
        second = TransportSession()
        await endpoint.connect(first)
        await endpoint.connect(second)
        first.close()

        responses = await endpoint.handle_exchange(
            second, [Request(jsonrpc="2.0", method="ping", id=9)]
        )

        assert responses[0].id == 9
        assert responses[0].result == {}


class TestInitialize:
    """Tests for the initialize handshake."""

    async def test_echoes_supported_version(self, endpoint):
        """A supported client version is echoed back."""
        [response] = await call(endpoint, "initialize", {"protocolVersion": "2025-03-26"})

        assert response.result["protocolVersion"] == "2025-03-26"
        assert response.result["serverInfo"] == {"name": "test-server", "version": "1.2.3"}
        assert response.result["capabilities"] == {"tools": {"listChanged": False}}
        assert response.result["instructions"] == "Use the tools."

    async def test_unknown_version_gets_latest(self, endpoint):
        """Unsupported versions are answered with our latest."""
        [response] = await call(endpoint, "initialize", {"protocolVersion": "1.0"})

        assert response.result["protocolVersion"] == PROTOCOL_VERSION


class TestTools:
    """Tests for tools/list and tools/call."""

    async def test_list(self, endpoint):
        """tools/list returns every registered tool's schema."""
        [response] = await call(endpoint, "tools/list")

        tools = response.result["tools"]
        assert [t["name"] for t in tools] == ["echo", "down", "crash"]
        assert tools[0]["inputSchema"] == ECHO_SCHEMA
        assert tools[0]["title"] == "Echo"

    async def test_call_success(self, endpoint):
        """A successful call returns a text result."""
        [response] = await call(
            endpoint, "tools/call", {"name": "echo", "arguments": {"text": "hi"}}
        )

        assert response.result == {
            "content": [{"type": "text", "text": "hi"}],
            "isError": False,
        }

    async def test_unknown_tool_is_invalid_params(self, endpoint):
        """Calling an unregistered tool is -32602."""
        [response] = await call(endpoint, "tools/call", {"name": "missing"})

        assert response.error["code"] == -32602
        assert "missing" in response.error["message"]

    async def test_missing_name_is_invalid_params(self, endpoint):
        """tools/call without a name is -32602."""
        [response] = await call(endpoint, "tools/call", {})

        assert response.error["code"] == -32602

    async def test_schema_violation_is_invalid_params(self, endpoint):
        """Arguments failing the input schema are -32602."""
        [response] = await call(
            endpoint, "tools/call", {"name": "echo", "arguments": {"text": 5}}
        )

        assert response.error["code"] == -32602
        assert "text" in response.error["message"]

    async def test_non_object_arguments_rejected(self, endpoint):
        """Arguments must be an object."""
        [response] = await call(
            endpoint, "tools/call", {"name": "echo", "arguments": ["hi"]}
        )

        assert response.error["code"] == -32602

    async def test_upstream_failure_is_tool_error(self, endpoint):
        """Upstream failures come back as isError results."""
        [response] = await call(endpoint, "tools/call", {"name": "down"})

        assert response.error is None
        assert response.result["isError"] is True
        assert "503" in response.result["content"][0]["text"]

    async def test_unexpected_failure_hides_details(self, endpoint):
        """Unexpected exceptions don't leak their message."""
        [response] = await call(endpoint, "tools/call", {"name": "crash"})

        assert response.result["isError"] is True
        assert "kaboom" not in response.result["content"][0]["text"]


class TestMisc:
    """Tests for ping and unknown methods."""

    async def test_ping(self, endpoint):
        """ping returns an empty result."""
        [response] = await call(endpoint, "ping")

        assert response.result == {}

    async def test_unknown_method(self, endpoint):
        """Unknown methods are -32601."""
        [response] = await call(endpoint, "resources/list")

        assert response.error["code"] == -32601
