"""
Web research pipeline.

Search -> scrape -> rank -> summarize per (query, page), assembled into a
Trace and compressed to a token budget on demand.
"""

from .compressor import ContextCompressor
from .duckduckgo import DuckDuckGoSearch
from .extraction import Extractor
from .orchestrator import QueryOrchestrator
from .ranker import RelevanceRanker, cosine_similarity
from .research_tool import ResearchTool
from .search_cache import SearchCache
from .searxng import SearXNGSearch
from .site_visitor import SiteVisitor
from .summarization_pool import SummarizationPool

__all__ = [
    "ContextCompressor",
    "DuckDuckGoSearch",
    "Extractor",
    "QueryOrchestrator",
    "RelevanceRanker",
    "ResearchTool",
    "SearXNGSearch",
    "SearchCache",
    "SiteVisitor",
    "SummarizationPool",
    "cosine_similarity",
]
