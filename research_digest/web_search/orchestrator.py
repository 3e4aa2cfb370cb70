"""
Query orchestrator.

Drives every (query, page) pair through
CacheCheck -> Searching -> Scraping -> Ranking -> Summarizing -> Attached
and assembles the results into a Trace. A Trace can then be compressed to a
token budget and rendered as a digest for the calling conversation.
"""

import time
from typing import List, Optional, Sequence

from ..agents.embedding_agent import EmbeddingAgent
from ..agents.model_agent import Conversation, ModelAgent
from ..config.settings import Settings, get_settings
from ..errors import (
    ConfigurationError,
    EmbeddingError,
    NoResultsError,
    ResearchDigestError,
    ScrapeError,
)
from ..logging_config import get_logger
from ..models.trace import PageDigest, Result, Trace
from ..tokens import estimate_tokens
from .compressor import ContextCompressor
from .duckduckgo import DuckDuckGoSearch
from .extraction import Extractor, build_prompt, extraction_registry
from .ranker import RelevanceRanker
from .search_cache import SearchCache
from .searxng import SearXNGSearch
from .site_visitor import SiteVisitor
from .summarization_pool import SummarizationPool

logger = get_logger("research_digest.orchestrator")


class QueryOrchestrator:
    """
    Runs research sessions end to end.

    The orchestrator owns its cache; one instance serves one research
    session at a time. Search engines and site visitors are duck typed:
    anything with ``async search(query, page)`` and ``async visit(url)``
    works.
    """

    def __init__(
        self,
        search_engine,
        site_visitor,
        embedding_agent: EmbeddingAgent,
        summary_agents: List[ModelAgent],
        cache: Optional[SearchCache] = None,
        threshold: float = 50.0,
        context_percentage: float = 75.0,
        instructions: str = "",
        compression_instructions: str = "",
        extractor: Optional[Extractor] = None,
        queue_size: int = 8,
    ):
        """
        Initialize the orchestrator.

        Args:
            search_engine: Search collaborator
            site_visitor: Scrape collaborator
            embedding_agent: Embeds queries and scraped content
            summary_agents: One pool worker per agent
            cache: Query cache (a private one is created if omitted)
            threshold: Minimum relevance percentage (0-100)
            context_percentage: Share of the summary context used as budget
            instructions: Extraction instructions sent with every chunk
            compression_instructions: Instructions used when compressing a trace
            extractor: Extraction protocol settings
            queue_size: Bound of the summarization queue

        Raises:
            ConfigurationError: a required agent is missing or the context
                budget cannot hold the prompt overhead
        """
        if embedding_agent is None:
            raise ConfigurationError("Orchestrator requires an embedding agent")
        if not summary_agents or any(agent is None for agent in summary_agents):
            raise ConfigurationError("Orchestrator requires at least one summary agent")

        self.search_engine = search_engine
        self.site_visitor = site_visitor
        self.embedding_agent = embedding_agent
        self.summary_agents = list(summary_agents)
        self.cache = cache if cache is not None else SearchCache()
        self.threshold = threshold
        self.context_percentage = context_percentage
        self.instructions = instructions
        self.compression_instructions = compression_instructions or instructions
        self.extractor = extractor or Extractor()

        prompt_overhead = max(
            estimate_tokens(build_prompt(instructions, "")),
            estimate_tokens(build_prompt(self.compression_instructions, "")),
        )
        for agent in self.summary_agents:
            overhead = estimate_tokens(agent.system_prompt) + prompt_overhead
            if agent.context_portion(context_percentage) <= overhead:
                raise ConfigurationError(
                    f"Context budget of {agent.name} cannot hold the prompt overhead",
                    context={"overhead": overhead, "context_window": agent.context_window},
                )

        self.ranker = RelevanceRanker(embedding_agent)
        self.pool = SummarizationPool(
            self.summary_agents,
            extractor=self.extractor,
            instructions=instructions,
            context_percentage=context_percentage,
            queue_size=queue_size,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "QueryOrchestrator":
        """Wire the real collaborators from settings."""
        settings = settings or get_settings()
        web = settings.web_search
        research = settings.research

        if web.engine == "duckduckgo":
            engine = DuckDuckGoSearch(timeout=web.search_timeout, request_delay=web.request_delay)
        elif web.engine == "searxng":
            engine = SearXNGSearch(base_url=web.searxng_url, timeout=web.search_timeout)
        else:
            raise ConfigurationError(f"Unknown search engine: {web.engine}")

        return cls(
            search_engine=engine,
            site_visitor=SiteVisitor(
                timeout=web.scrape_timeout,
                max_content_length=web.max_content_length,
            ),
            embedding_agent=EmbeddingAgent.from_settings(settings),
            summary_agents=ModelAgent.from_settings(settings),
            threshold=research.relevancy_threshold,
            context_percentage=research.context_percentage,
            instructions=research.extraction_instructions,
            compression_instructions=research.compression_instructions,
            extractor=Extractor(
                max_attempts=research.max_extraction_attempts,
                max_compression_rounds=research.max_compression_rounds,
            ),
            queue_size=research.queue_size,
        )

    async def _scrape_all(self, results: Sequence[Result]) -> List[Result]:
        """Scrape and embed each result in turn, dropping the ones that fail."""
        scraped: List[Result] = []
        for result in results:
            try:
                result.content = await self.site_visitor.visit(result.url)
                result.embeddings = await self.embedding_agent.embed(result.content)
            except (ScrapeError, EmbeddingError) as e:
                logger.warning(f"Skipping {result.url}: {e.message}")
                continue
            scraped.append(result)
        return scraped

    async def handle_page(self, trace: Trace, query: str, page: int) -> PageDigest:
        """
        Research one page of one query and attach its digest to ``trace``.

        Raises:
            SearchError: the search engine failed for this page
            RankingError: the query could not be embedded
        """
        bundle = trace.bundle_for(query)

        cached = self.cache.get_page(query, page)
        if cached is not None:
            logger.info(f"Cache hit for query: {query} page: {page}")
            bundle.attach_page(cached)
            return cached

        results = await self.search_engine.search(query, page)
        logger.info(f"Searching: {query} page: {page} found: {len(results)}")

        scraped = await self._scrape_all(results)
        ranked = await self.ranker.rank(scraped, query, self.threshold)

        digest = PageDigest(page=page, results=ranked)
        if not ranked:
            logger.info(f"No results above {self.threshold}% for query: {query} page: {page}")
            bundle.attach_page(digest)
            return digest

        await self.pool.summarize_all(ranked)
        bundle.attach_page(digest)
        return digest

    async def run_query(self, trace: Trace, query: str, pages: int = 1) -> List[Result]:
        """
        Research pages 1..``pages`` of ``query``.

        A page that fails is logged and skipped. The query's bundle is
        cached once at the end, including empty pages.

        Returns:
            Every result that cleared the threshold, page by page

        Raises:
            NoResultsError: no page produced a relevant result
        """
        start = time.monotonic()
        for page in range(1, max(pages, 1) + 1):
            try:
                await self.handle_page(trace, query, page)
            except ResearchDigestError as e:
                logger.error(f"Skipping page {page} of {query!r}: {e.message}")

        bundle = trace.bundle_for(query)
        if bundle.pages:
            self.cache.set(query, bundle)
        trace.duration_ms += int((time.monotonic() - start) * 1000)

        results = bundle.results()
        if not results:
            raise NoResultsError(query)
        return results

    async def run_queries(
        self,
        queries: Sequence[str],
        prompt: str,
        reason: str = "",
        pages: int = 1
    ) -> Trace:
        """Research every query into one Trace; queries without results are skipped."""
        trace = Trace(
            user_prompt=prompt,
            reason=reason,
            summary_agents=self.summary_agents,
            embedding_agent=self.embedding_agent,
        )
        for query in queries:
            try:
                results = await self.run_query(trace, query, pages)
            except NoResultsError as e:
                logger.info(e.message)
                continue
            logger.info(f"Query {query!r} produced {len(results)} results")

        logger.info(f"Research finished in {trace.format_duration()}")
        return trace

    async def summarize_trace(self, trace: Trace, budget: Optional[int] = None) -> str:
        """
        Compress ``trace`` to ``budget`` tokens and render it.

        The budget defaults to the configured share of the first summary
        agent's context window. It covers the whole rendered digest, so
        result bodies get what titles and dividers leave over. When even that
        overhead does not fit, the least relevant results are dropped.
        """
        if trace.is_empty():
            queries = ", ".join(b.query for b in trace.bundles) or trace.user_prompt
            return f"No results found for: {queries}"

        agent = self.summary_agents[0]
        if budget is None:
            budget = agent.context_portion(self.context_percentage)

        conversation = Conversation(agent, extraction_registry())
        max_context = agent.context_portion(self.context_percentage)

        async def condense(result: Result, share: int) -> None:
            try:
                await self.extractor.condense(
                    result, conversation, self.compression_instructions, max_context, share
                )
            except ResearchDigestError as e:
                logger.warning(f"Could not condense {result.url}: {e.message}")

        self._drop_until(trace, budget, trace.render_overhead)
        await ContextCompressor(condense).fit_trace(trace, max(budget - trace.render_overhead(), 0))
        digest = trace.render()
        if estimate_tokens(digest) > budget:
            self._drop_until(trace, budget, lambda: estimate_tokens(trace.render()))
            digest = trace.render()
        return digest

    @staticmethod
    def _drop_until(trace: Trace, budget: int, measure) -> None:
        """Drop the least relevant results while ``measure()`` exceeds the budget, keeping one."""
        while len(trace.results()) > 1 and measure() > budget:
            dropped = trace.drop_least_relevant()
            logger.info(f"Dropped {dropped.url} (score {dropped.score:.2f}) to fit {budget} tokens")
