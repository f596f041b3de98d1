"""Unit tests for the Perplexity MCP tools."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from perplexity_mcp.core.errors import UpstreamError
from perplexity_mcp.mcp.protocol import MCPServerInfo
from perplexity_mcp.mcp.server import ProtocolEndpoint
from perplexity_mcp.mcp.transport import TransportSession
from perplexity_mcp.perplexity.client import ChatResult, SearchResult
from perplexity_mcp.perplexity.tools import (
    ASK_MODEL,
    REASON_MODEL,
    RESEARCH_MODEL,
    build_tools,
    format_chat_result,
    format_search_results,
    strip_thinking_tokens,
)
from perplexity_mcp.rpc.types import Request

MESSAGES = [{"role": "user", "content": "Why is the sky blue?"}]


@pytest.fixture
def client():
    client = MagicMock()
    client.chat_completion = AsyncMock(
        return_value=ChatResult("<think>hmm</think>Rayleigh scattering.", ["https://x.example"])
    )
    client.search = AsyncMock(return_value=[SearchResult("Sky", "https://sky.example")])
    return client


@pytest.fixture
def tools(client):
    return {tool.name: tool for tool in build_tools(client)}


class TestFormatting:
    """Tests for answer and search result formatting."""

    def test_strip_thinking(self):
        """<think> blocks are removed wherever they appear."""
        assert strip_thinking_tokens("<think>a\nb</think>\nAnswer") == "Answer"
        assert strip_thinking_tokens("<think>1</think>x<think>2</think>y") == "xy"

    def test_citations_appended(self):
        """Citations are appended as a numbered list."""
        text = format_chat_result(ChatResult("Answer", ["https://a", "https://b"]))

        assert text == "Answer\n\nCitations:\n[1] https://a\n[2] https://b"

    def test_no_citations(self):
        """Without citations the answer is unchanged."""
        assert format_chat_result(ChatResult("Answer")) == "Answer"

    def test_strip_thinking_optional(self):
        """Thinking is kept unless stripping is requested."""
        result = ChatResult("<think>x</think>Answer")

        assert format_chat_result(result) == "<think>x</think>Answer"
        assert format_chat_result(result, strip_thinking=True) == "Answer"

    def test_search_results(self):
        """Hits render as a numbered list with optional fields."""
        text = format_search_results([
            SearchResult("One", "https://one", "first", "2025-02-01"),
            SearchResult("Two", "https://two"),
        ])

        assert text.startswith("Found 2 search results:")
        assert "1. **One**" in text
        assert "   Date: 2025-02-01" in text
        assert text.endswith("   URL: https://two")

    def test_no_search_results(self):
        """An empty hit list has its own message."""
        assert format_search_results([]) == "No search results found."


class TestBuildTools:
    """Tests for the Perplexity tool set."""

    def test_tool_set(self, tools):
        """All four tools are built and marked read-only."""
        assert list(tools) == [
            "perplexity_ask",
            "perplexity_research",
            "perplexity_reason",
            "perplexity_search",
        ]
        for tool in tools.values():
            assert tool.annotations["readOnlyHint"] is True

    async def test_ask_uses_ask_model(self, tools, client):
        """perplexity_ask calls sonar-pro and keeps thinking."""
        text = await tools["perplexity_ask"].handler({"messages": MESSAGES})

        client.chat_completion.assert_awaited_once_with(MESSAGES, model=ASK_MODEL)
        assert text.startswith("<think>")
        assert "[1] https://x.example" in text

    async def test_research_strips_thinking_on_request(self, tools, client):
        """perplexity_research honors strip_thinking."""
        text = await tools["perplexity_research"].handler(
            {"messages": MESSAGES, "strip_thinking": True}
        )

        client.chat_completion.assert_awaited_once_with(MESSAGES, model=RESEARCH_MODEL)
        assert text.startswith("Rayleigh scattering.")

    async def test_reason_model(self, tools, client):
        """perplexity_reason calls the reasoning model."""
        await tools["perplexity_reason"].handler({"messages": MESSAGES})

        client.chat_completion.assert_awaited_once_with(MESSAGES, model=REASON_MODEL)

    async def test_search_defaults(self, tools, client):
        """perplexity_search fills in default limits."""
        text = await tools["perplexity_search"].handler({"query": "sky"})

        client.search.assert_awaited_once_with(
            "sky", max_results=10, max_tokens_per_page=1024, country=None
        )
        assert "https://sky.example" in text


class TestToolsThroughEndpoint:
    """Schema validation and error mapping for the real tool set."""

    async def call(self, client, name, arguments):
        endpoint = ProtocolEndpoint(MCPServerInfo("t", "0"), tools=build_tools(client))
        session = TransportSession()
        await endpoint.connect(session)
        [response] = await endpoint.handle_exchange(session, [Request(
            jsonrpc="2.0", method="tools/call", id=1,
            params={"name": name, "arguments": arguments},
        )])
        return response

    async def test_empty_messages_rejected(self, client):
        """An empty messages array fails validation before any upstream call."""
        response = await self.call(client, "perplexity_ask", {"messages": []})

        assert response.error["code"] == -32602
        client.chat_completion.assert_not_awaited()

    async def test_max_results_bounds(self, client):
        """max_results above 20 fails validation."""
        response = await self.call(
            client, "perplexity_search", {"query": "q", "max_results": 50}
        )

        assert response.error["code"] == -32602

    async def test_upstream_error_becomes_tool_error(self, client):
        """Upstream errors surface as isError tool results."""
        client.chat_completion.side_effect = UpstreamError("Perplexity API error: 500 oops")

        response = await self.call(client, "perplexity_ask", {"messages": MESSAGES})

        assert response.result["isError"] is True
        assert response.result["content"][0]["text"] == "Error: Perplexity API error: 500 oops"
