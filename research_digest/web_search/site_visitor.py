"""
Async site visitor for extracting paragraph text from web pages.
Handles DuckDuckGo redirect URLs and refuses plain HTTP.
"""

import asyncio
from urllib.parse import parse_qs, unquote, urlparse

import aiohttp
from bs4 import BeautifulSoup

from ..errors import ScrapeError


class SiteVisitor:
    """Async web page content extractor."""

    DEFAULT_HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/91.0.4472.124 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }

    def __init__(self, timeout: int = 10, max_content_length: int = 500000):
        """
        Initialize site visitor.

        Args:
            timeout: Request timeout in seconds
            max_content_length: Maximum HTML characters to process
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_content_length = max_content_length

    @staticmethod
    def resolve_url(url: str) -> str:
        """
        Resolve DuckDuckGo redirect URLs to actual URLs.

        DuckDuckGo uses tracking redirects like:
        //duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com
        """
        if url.startswith("//"):
            url = "https:" + url

        if "duckduckgo.com/l/" in url:
            params = parse_qs(urlparse(url).query)
            if "uddg" in params:
                url = unquote(params["uddg"][0])

        return url

    async def visit(self, url: str) -> str:
        """
        Visit a URL and extract its paragraph text.

        Args:
            url: URL to visit (may be DuckDuckGo redirect)

        Returns:
            Paragraph text, one paragraph per line

        Raises:
            ScrapeError: non-HTTPS URL, request failure, non-HTML or
                undecodable response, or a page without paragraph text
        """
        actual_url = self.resolve_url(url)
        if not actual_url.startswith("https://"):
            raise ScrapeError(f"Skipping non-HTTPS URL: {actual_url}", actual_url)

        try:
            async with aiohttp.ClientSession(
                headers=self.DEFAULT_HEADERS,
                timeout=self.timeout
            ) as session:
                async with session.get(actual_url) as response:
                    response.raise_for_status()

                    content_type = response.headers.get("Content-Type", "")
                    if "text/html" not in content_type.lower():
                        raise ScrapeError(f"Unsupported content type {content_type!r}", actual_url)

                    html = await response.text()
        except asyncio.TimeoutError as e:
            raise ScrapeError(f"Timeout visiting {actual_url}", actual_url) from e
        except aiohttp.ClientError as e:
            raise ScrapeError(f"Error visiting {actual_url}: {e}", actual_url) from e
        except (UnicodeDecodeError, LookupError) as e:
            raise ScrapeError(f"Undecodable content at {actual_url}: {e}", actual_url) from e

        if len(html) > self.max_content_length:
            html = html[:self.max_content_length]

        text = self.extract_text(html)
        if not text:
            raise ScrapeError(f"No content found for URL: {actual_url}", actual_url)
        return text

    @staticmethod
    def extract_text(html: str) -> str:
        """Extract paragraph text from HTML, skipping scripts and styles."""
        soup = BeautifulSoup(html, "lxml")

        for element in soup(["script", "style", "nav", "footer", "header"]):
            element.decompose()

        paragraphs = (p.get_text(" ", strip=True) for p in soup.find_all("p"))
        return "\n".join(p for p in paragraphs if p).strip()
