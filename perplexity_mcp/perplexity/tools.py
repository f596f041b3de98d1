"""Perplexity tools exposed over MCP.

- perplexity_ask       conversational answer with web search (sonar-pro)
- perplexity_research  deep multi-source research (sonar-deep-research)
- perplexity_reason    step-by-step reasoning (sonar-reasoning-pro)
- perplexity_search    ranked web search results
"""

from __future__ import annotations

import re
from typing import Any

from perplexity_mcp.mcp.protocol import MCPTool
from perplexity_mcp.perplexity.client import ChatResult, PerplexityClient, SearchResult

ASK_MODEL = "sonar-pro"
RESEARCH_MODEL = "sonar-deep-research"
REASON_MODEL = "sonar-reasoning-pro"

_THINK_PATTERN = re.compile(r"<think>.*?</think>", re.DOTALL)

_MESSAGES_SCHEMA: dict[str, Any] = {
    "type": "array",
    "description": "Array of conversation messages",
    "minItems": 1,
    "items": {
        "type": "object",
        "properties": {
            "role": {
                "type": "string",
                "description": "Role of the message (e.g., system, user, assistant)",
            },
            "content": {
                "type": "string",
                "description": "The content of the message",
            },
        },
        "required": ["role", "content"],
    },
}

_STRIP_THINKING_SCHEMA: dict[str, Any] = {
    "type": "boolean",
    "description": (
        "If true, removes <think>...</think> tags and their content from the "
        "response to save context tokens. Default is false."
    ),
}

_READ_ONLY = {"readOnlyHint": True, "openWorldHint": True}


def strip_thinking_tokens(content: str) -> str:
    """Remove <think>...</think> blocks from a model answer."""
    return _THINK_PATTERN.sub("", content).strip()


def format_chat_result(result: ChatResult, strip_thinking: bool = False) -> str:
    """Render an answer, appending numbered citations when present."""
    content = strip_thinking_tokens(result.content) if strip_thinking else result.content
    if result.citations:
        content += "\n\nCitations:\n"
        content += "\n".join(
            f"[{i}] {url}" for i, url in enumerate(result.citations, start=1)
        )
    return content


def format_search_results(results: list[SearchResult]) -> str:
    """Render search hits as a numbered plain-text list."""
    if not results:
        return "No search results found."

    lines = [f"Found {len(results)} search results:", ""]
    for i, hit in enumerate(results, start=1):
        lines.append(f"{i}. **{hit.title}**")
        lines.append(f"   URL: {hit.url}")
        if hit.snippet:
            lines.append(f"   {hit.snippet}")
        if hit.date:
            lines.append(f"   Date: {hit.date}")
        lines.append("")
    return "\n".join(lines).rstrip()


def build_tools(client: PerplexityClient) -> list[MCPTool]:
    """Create the Perplexity tool set bound to one client."""

    async def ask(arguments: dict[str, Any]) -> str:
        result = await client.chat_completion(arguments["messages"], model=ASK_MODEL)
        return format_chat_result(result)

    async def research(arguments: dict[str, Any]) -> str:
        result = await client.chat_completion(arguments["messages"], model=RESEARCH_MODEL)
        return format_chat_result(result, arguments.get("strip_thinking", False))

    async def reason(arguments: dict[str, Any]) -> str:
        result = await client.chat_completion(arguments["messages"], model=REASON_MODEL)
        return format_chat_result(result, arguments.get("strip_thinking", False))

    async def search(arguments: dict[str, Any]) -> str:
        results = await client.search(
            arguments["query"],
            max_results=arguments.get("max_results", 10),
            max_tokens_per_page=arguments.get("max_tokens_per_page", 1024),
            country=arguments.get("country"),
        )
        return format_search_results(results)

    return [
        MCPTool(
            name="perplexity_ask",
            title="Ask Perplexity",
            description=(
                "Answer a question using web search. Accepts an array of messages "
                "and returns the answer with numbered citations."
            ),
            handler=ask,
            input_schema={
                "type": "object",
                "properties": {"messages": _MESSAGES_SCHEMA},
                "required": ["messages"],
            },
            annotations=_READ_ONLY,
        ),
        MCPTool(
            name="perplexity_research",
            title="Deep Research",
            description=(
                "Conduct thorough, multi-source research on a topic. Slower than "
                "perplexity_ask; returns a detailed report with citations."
            ),
            handler=research,
            input_schema={
                "type": "object",
                "properties": {
                    "messages": _MESSAGES_SCHEMA,
                    "strip_thinking": _STRIP_THINKING_SCHEMA,
                },
                "required": ["messages"],
            },
            annotations=_READ_ONLY,
        ),
        MCPTool(
            name="perplexity_reason",
            title="Advanced Reasoning",
            description=(
                "Work through complex analytical questions step by step, using web "
                "search for supporting facts."
            ),
            handler=reason,
            input_schema={
                "type": "object",
                "properties": {
                    "messages": _MESSAGES_SCHEMA,
                    "strip_thinking": _STRIP_THINKING_SCHEMA,
                },
                "required": ["messages"],
            },
            annotations=_READ_ONLY,
        ),
        MCPTool(
            name="perplexity_search",
            title="Search the Web",
            description=(
                "Search the web and return ranked results with titles, URLs, "
                "snippets and dates."
            ),
            handler=search,
            input_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query string"},
                    "max_results": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": 20,
                        "description": "Maximum number of results to return (1-20, default: 10)",
                    },
                    "max_tokens_per_page": {
                        "type": "integer",
                        "minimum": 256,
                        "maximum": 2048,
                        "description": "Maximum tokens to extract per webpage (default: 1024)",
                    },
                    "country": {
                        "type": "string",
                        "description": "ISO 3166-1 alpha-2 country code for regional results (e.g., 'US', 'GB')",
                    },
                },
                "required": ["query"],
            },
            annotations=_READ_ONLY,
        ),
    ]
