"""
client.py - Tavily Search API client.

Async HTTP client for the Tavily search endpoint with:
- Separate connect/read timeouts and a total time budget
- Exponential backoff retry logic (429, 5xx and timeouts only)
- Response normalization to the result shape the answer pipeline embeds in prompts
- No API keys or full responses in logs
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from detail_service.core.errors import AuthenticationError, RateLimitError, UpstreamError
from detail_service.core.interfaces import SearchProvider


logger = logging.getLogger(__name__)

CONTENT_LIMIT = 2000


class TavilySearchClient(SearchProvider):
    """
    Async HTTP client for the Tavily Search API.

    Implements timeout management, retry logic, and response normalization.
    """

    BASE_URL = "https://api.tavily.com/search"

    def __init__(
        self,
        api_key: str,
        search_depth: str = "advanced",
        max_results: int = 5,
        connect_timeout: float = 3.0,
        read_timeout: float = 15.0,
        total_timeout: float = 30.0,
        max_retries: int = 2,
        backoff_base: float = 0.5,
        base_url: Optional[str] = None,
    ):
        """
        Initialize the Tavily client.

        Args:
            api_key: Tavily API key (sent as a Bearer token)
            search_depth: "basic" or "advanced"
            max_results: Default number of results per query
            connect_timeout: Socket connect timeout in seconds
            read_timeout: Socket read timeout in seconds
            total_timeout: Total request budget including retries
            max_retries: Maximum retry attempts for 429/5xx/timeouts
            backoff_base: Base delay for exponential backoff in seconds
            base_url: Override of the search endpoint (tests, proxies)
        """
        if not api_key:
            raise ValueError("API key cannot be empty")

        self.api_key = api_key
        self.search_depth = search_depth
        self.max_results = max_results
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.total_timeout = total_timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.url = base_url or self.BASE_URL

    def _backoff(self, attempt: int) -> float:
        return self.backoff_base * (2 ** attempt)

    async def search(
        self,
        query: str,
        max_results: Optional[int] = None,
        include_domains: Optional[List[str]] = None,
        exclude_domains: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Execute a web search.

        Returns:
            {
                "results": [{"title", "url", "content", "score", "published_date"}],
                "meta": {"took_ms", "engine", "query"},
            }

        Raises:
            AuthenticationError: 401/403 from Tavily
            RateLimitError: 429 after retries are exhausted
            UpstreamError: other non-2xx responses
            asyncio.TimeoutError / httpx.TimeoutException: budget exhausted
        """
        start_time = time.time()

        payload: Dict[str, Any] = {
            "query": query,
            "search_depth": self.search_depth,
            "include_answer": True,
            "include_domains": include_domains or [],
            "exclude_domains": exclude_domains or [],
            "max_results": max_results or self.max_results,
        }
        payload.update(kwargs)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        attempt = 0
        last_exception: Optional[BaseException] = None

        while attempt <= self.max_retries:
            elapsed = time.time() - start_time
            if elapsed >= self.total_timeout:
                logger.error(f"Total timeout exceeded ({self.total_timeout}s) after {attempt} attempts")
                raise asyncio.TimeoutError(f"Request exceeded total timeout of {self.total_timeout}s")

            remaining = self.total_timeout - elapsed
            attempt_timeout = httpx.Timeout(
                connect=min(self.connect_timeout, remaining),
                read=min(self.read_timeout, remaining),
                write=5.0,
                pool=5.0,
            )

            try:
                async with httpx.AsyncClient(timeout=attempt_timeout) as client:
                    response = await client.post(self.url, headers=headers, json=payload)
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                logger.warning(f"Timeout on attempt {attempt + 1}/{self.max_retries + 1}")
                last_exception = e
                if attempt < self.max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                    attempt += 1
                    continue
                raise

            logger.info(
                f"Tavily response: status={response.status_code}, "
                f"latency={int((time.time() - start_time) * 1000)}ms, "
                f"attempt={attempt + 1}"
            )

            if response.status_code == 200:
                return self._normalize_response(response.json(), query, time.time() - start_time)

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    delay = float(retry_after) if retry_after else self._backoff(attempt)
                except ValueError:
                    delay = self._backoff(attempt)
                logger.warning(
                    f"Rate limit (429) - attempt {attempt + 1}/{self.max_retries + 1}, "
                    f"retrying in {delay:.1f}s"
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                raise RateLimitError(details=response.text[:200], retry_after=delay)

            if response.status_code >= 500:
                delay = self._backoff(attempt)
                logger.warning(
                    f"Server error ({response.status_code}) - attempt {attempt + 1}/{self.max_retries + 1}, "
                    f"retrying in {delay:.1f}s"
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                raise UpstreamError(
                    f"Tavily API error: {response.status_code}",
                    details=response.text[:200],
                    status_code=502,
                )

            if response.status_code in (401, 403):
                logger.error(f"Authentication failed ({response.status_code}) - check TAVILY_API_KEY")
                raise AuthenticationError("Tavily API authentication failed. Please verify your TAVILY_API_KEY.")

            logger.error(f"Client error ({response.status_code}): {response.text[:100]}")
            raise UpstreamError(
                f"Tavily API error: {response.status_code}",
                details=response.text[:200],
                status_code=response.status_code,
            )

        if last_exception:
            raise last_exception
        raise RuntimeError("Unexpected retry loop exit")

    def _normalize_response(self, data: Dict[str, Any], query: str, elapsed_sec: float) -> Dict[str, Any]:
        results = []
        for item in data.get("results", []) or []:
            content = item.get("content", "") or ""
            if len(content) > CONTENT_LIMIT:
                content = content[:CONTENT_LIMIT] + "..."
            result = {
                "title": item.get("title", ""),
                "url": item.get("url", ""),
                "content": content,
                "score": item.get("score", 0.0),
            }
            if item.get("published_date"):
                result["published_date"] = item["published_date"]
            results.append(result)

        logger.info(f"Normalized {len(results)} results for query='{query}'")

        out: Dict[str, Any] = {
            "results": results,
            "meta": {
                "took_ms": int(elapsed_sec * 1000),
                "engine": "tavily",
                "query": query,
            },
        }
        if data.get("answer"):
            out["answer"] = data["answer"]
        return out
