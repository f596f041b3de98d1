"""HTTP client for the Perplexity API with retry and error capping.

The client owns a lazily created httpx.AsyncClient that is reused across
requests and shared by all tool invocations. It holds no per-request state.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

from perplexity_mcp.core.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.perplexity.ai"
DEFAULT_TIMEOUT = 300.0

# Retry configuration
MAX_RETRIES = 3
MAX_RETRY_DELAY = 10.0  # Maximum delay between retries in seconds
DEFAULT_RETRY_BACKOFF = 1.5  # Exponential backoff multiplier
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Maximum size for error response bodies
MAX_ERROR_BODY_SIZE: int = 10 * 1024  # 10 KB


@dataclass
class ChatResult:
    """Answer from the chat completions API.

    Attributes:
        content: The assistant message text.
        citations: Source URLs, in citation order.
    """

    content: str
    citations: list[str] = field(default_factory=list)


@dataclass
class SearchResult:
    """One hit from the search API."""

    title: str
    url: str
    snippet: str = ""
    date: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchResult":
        return cls(
            title=data.get("title") or "",
            url=data.get("url") or "",
            snippet=data.get("snippet") or "",
            date=data.get("date"),
        )


class PerplexityClient:
    """Async client for the Perplexity chat completions and search APIs.

    Example:
        client = PerplexityClient(api_key)
        result = await client.chat_completion(
            [{"role": "user", "content": "What is MCP?"}], model="sonar-pro"
        )
        await client.aclose()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Perplexity API key.
            base_url: API base URL.
            timeout: Per-request timeout in seconds.
            max_retries: Retries after the first attempt for retryable failures.
            retry_backoff: Exponential backoff multiplier.
            transport: Optional httpx transport (used by tests).
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client. Safe to call multiple times."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Delay before the next retry: exponential backoff plus 0-1s jitter."""
        delay = (self._retry_backoff ** attempt) + random.uniform(0, 1)
        return min(delay, MAX_RETRY_DELAY)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        return response.content[:MAX_ERROR_BODY_SIZE].decode(errors="replace")

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body with retries.

        Raises:
            UpstreamError: On failure after all retries.
        """
        url = f"{self._base_url}{path}"
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                client = await self._ensure_client()
                response = await client.post(url, headers=self._build_headers(), json=body)

                if response.status_code == 401:
                    raise UpstreamError("Perplexity authentication failed. Check PERPLEXITY_API_KEY.")

                if response.status_code == 403:
                    raise UpstreamError("Perplexity access forbidden. Check your API permissions.")

                if response.status_code in RETRYABLE_STATUS_CODES:
                    last_error = UpstreamError(
                        f"Perplexity API error: {response.status_code} {self._error_detail(response)}"
                    )
                    if attempt < self._max_retries:
                        delay = self._calculate_retry_delay(attempt)
                        logger.debug(
                            "Retrying %s after status %s in %.1fs",
                            path, response.status_code, delay,
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise last_error

                if response.status_code >= 400:
                    raise UpstreamError(
                        f"Perplexity API error: {response.status_code} {self._error_detail(response)}"
                    )

                try:
                    data = response.json()
                except ValueError as e:
                    raise UpstreamError(f"Failed to parse Perplexity response: {e}") from e
                if not isinstance(data, dict):
                    raise UpstreamError("Unexpected Perplexity response format")
                return data

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_error = e
                if attempt < self._max_retries:
                    await asyncio.sleep(self._calculate_retry_delay(attempt))
                    continue
                if isinstance(e, httpx.ConnectError):
                    raise UpstreamError(
                        f"Failed to connect to Perplexity after {self._max_retries + 1} attempts: {e}"
                    ) from e
                raise UpstreamError(
                    f"Perplexity request timed out after {self._max_retries + 1} attempts"
                ) from e
            except httpx.HTTPError as e:
                raise UpstreamError(f"HTTP error occurred: {e}") from e

        msg = f"Request failed after {self._max_retries + 1} attempts"
        raise UpstreamError(msg) from last_error

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        **options: Any,
    ) -> ChatResult:
        """Call /chat/completions.

        Args:
            messages: Conversation as [{"role": ..., "content": ...}].
            model: Perplexity model name (e.g. "sonar-pro").
            **options: Extra request fields passed through unchanged.

        Raises:
            UpstreamError: On API failure or a malformed response.
        """
        data = await self._post(
            "/chat/completions", {"model": model, "messages": messages, **options}
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError("Invalid response format from Perplexity API") from e
        if not isinstance(content, str):
            raise UpstreamError("Invalid response format from Perplexity API")

        citations = data.get("citations")
        if not isinstance(citations, list):
            citations = []
        return ChatResult(content=content, citations=[str(c) for c in citations])

    async def search(
        self,
        query: str,
        max_results: int = 10,
        max_tokens_per_page: int = 1024,
        country: str | None = None,
    ) -> list[SearchResult]:
        """Call /search.

        Raises:
            UpstreamError: On API failure or a malformed response.
        """
        body: dict[str, Any] = {
            "query": query,
            "max_results": max_results,
            "max_tokens_per_page": max_tokens_per_page,
        }
        if country:
            body["country"] = country

        data = await self._post("/search", body)
        results = data.get("results")
        if not isinstance(results, list):
            raise UpstreamError("Invalid response format from Perplexity Search API")
        return [SearchResult.from_dict(r) for r in results if isinstance(r, dict)]
