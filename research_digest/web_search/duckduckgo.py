"""
Async DuckDuckGo search implementation.
Uses the HTML endpoint, paging with the ``s`` offset parameter.
"""

import asyncio
from typing import List

import aiohttp
from bs4 import BeautifulSoup

from ..errors import SearchError
from ..logging_config import get_logger
from ..models.trace import Result

logger = get_logger("research_digest.search")


class DuckDuckGoSearch:
    """Async DuckDuckGo search client using HTML endpoint."""

    BASE_URL = "https://html.duckduckgo.com/html/"
    RESULTS_PER_PAGE = 10

    DEFAULT_HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }

    def __init__(self, timeout: int = 30, request_delay: float = 1.0):
        """
        Initialize DuckDuckGo search client.

        Args:
            timeout: Request timeout in seconds
            request_delay: Pause before each request, to avoid rate limiting
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.request_delay = request_delay

    async def search(self, query: str, page: int = 1) -> List[Result]:
        """
        Fetch one page of results.

        Args:
            query: Search query string
            page: 1-based page number

        Returns:
            Results with title, url and snippet filled in

        Raises:
            SearchError: the request failed, timed out or could not be decoded
        """
        if not query or not query.strip():
            return []

        data = {
            "q": query,
            "s": str((page - 1) * self.RESULTS_PER_PAGE),
        }

        if self.request_delay:
            await asyncio.sleep(self.request_delay)

        try:
            async with aiohttp.ClientSession(
                headers=self.DEFAULT_HEADERS,
                timeout=self.timeout
            ) as session:
                async with session.post(self.BASE_URL, data=data) as response:
                    response.raise_for_status()
                    html = await response.text()
        except asyncio.TimeoutError as e:
            raise SearchError("DuckDuckGo search timeout", query, page) from e
        except aiohttp.ClientError as e:
            raise SearchError(f"DuckDuckGo search error: {e}", query, page) from e
        except (UnicodeDecodeError, LookupError) as e:
            raise SearchError(f"Undecodable DuckDuckGo response: {e}", query, page) from e

        results = self._parse_results(html)
        logger.info(f"Results for query: {query} page: {page} results: {len(results)}")
        return results

    def _parse_results(self, html: str) -> List[Result]:
        """Parse search results from HTML response."""
        soup = BeautifulSoup(html, "lxml")
        results = []

        for result_div in soup.select(".result"):
            title_elem = result_div.select_one(".result__title a") or result_div.select_one(".result__a")
            if not title_elem:
                continue

            title = title_elem.get_text(strip=True)
            url = title_elem.get("href", "")

            snippet_elem = result_div.select_one(".result__snippet")
            snippet = snippet_elem.get_text(strip=True) if snippet_elem else ""

            if title and url:
                results.append(Result(title=title, url=url, snippet=snippet))

        return results
