"""
SearXNG search client.
Uses the JSON API for reliable, structured results.
"""

import asyncio
import os
from typing import List, Optional

import aiohttp

from ..errors import SearchError
from ..logging_config import get_logger
from ..models.trace import Result

logger = get_logger("research_digest.search")


class SearXNGSearch:
    """Async SearXNG search client using JSON API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 30,
        categories: str = "general",
        language: str = "en"
    ):
        """
        Initialize SearXNG search client.

        Args:
            base_url: SearXNG instance URL (default: from env or localhost)
            timeout: Request timeout in seconds
            categories: Search categories (general, news, ...)
            language: Search language
        """
        self.base_url = base_url or os.getenv("SEARXNG_URL", "http://localhost:8080")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.categories = categories
        self.language = language

    async def search(self, query: str, page: int = 1) -> List[Result]:
        """
        Fetch one page of results.

        Args:
            query: Search query string
            page: 1-based page number

        Returns:
            Results with title, url and snippet filled in

        Raises:
            SearchError: the request failed, timed out or returned bad JSON
        """
        if not query or not query.strip():
            return []

        params = {
            "q": query,
            "format": "json",
            "categories": self.categories,
            "language": self.language,
            "pageno": str(page),
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                url = f"{self.base_url}/search"
                async with session.get(url, params=params) as response:
                    response.raise_for_status()
                    data = await response.json()
        except asyncio.TimeoutError as e:
            raise SearchError("SearXNG search timeout", query, page) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise SearchError(f"SearXNG search error: {e}", query, page) from e

        results = [
            Result(
                title=item.get("title", ""),
                url=item.get("url", ""),
                snippet=item.get("content", ""),
            )
            for item in data.get("results", [])
            if item.get("url")
        ]
        logger.info(f"Results for query: {query} page: {page} results: {len(results)}")
        return results

    async def health_check(self) -> bool:
        """Check if SearXNG is available."""
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(f"{self.base_url}/healthz") as response:
                    return response.status == 200
        except (asyncio.TimeoutError, aiohttp.ClientError):
            return False
