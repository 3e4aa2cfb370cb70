"""Exception hierarchy for the research pipeline."""

from typing import Any, Optional


class ResearchDigestError(Exception):
    """Base exception for the research pipeline."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(ResearchDigestError):
    """Missing agents, keys or tool definitions. Not recoverable."""

    pass


class SearchError(ResearchDigestError):
    """The search engine failed for one (query, page)."""

    def __init__(
        self,
        message: str,
        query: str,
        page: int,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.query = query
        self.page = page


class ScrapeError(ResearchDigestError):
    """A single URL could not be scraped."""

    def __init__(self, message: str, url: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message, context)
        self.url = url


class EmbeddingError(ResearchDigestError):
    """The embedding service failed."""

    pass


class RankingError(ResearchDigestError):
    """Ranking aborted for a whole batch (query embedding failed)."""

    pass


class ModelError(ResearchDigestError):
    """The chat model request failed at the transport level."""

    pass


class ExtractionBindError(ResearchDigestError):
    """A reply carried no usable structured tool result."""

    def __init__(
        self,
        message: str,
        tool_name: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.tool_name = tool_name


class NoResultsError(ResearchDigestError):
    """Nothing cleared the relevance threshold for a query."""

    def __init__(self, query: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"No results found for query: {query}", context)
        self.query = query
