"""
Context-budget compressor.

Shrinks a Trace in place until its estimated size fits a token budget. Each
level splits its budget evenly over its children, visits the least relevant
children first, and recurses into every child larger than its share until
the level fits. Leaves are shrunk by summarization. This is a heuristic:
the result may overshoot by about one leaf.
"""

from typing import Awaitable, Callable

from ..logging_config import get_logger
from ..models.trace import Bundle, PageDigest, Result, Trace

logger = get_logger("research_digest.compressor")

LeafShrinker = Callable[[Result, int], Awaitable[None]]


class ContextCompressor:
    """Fits a trace into a token budget using a leaf shrinker."""

    def __init__(self, shrink_result: LeafShrinker):
        self.shrink_result = shrink_result

    async def fit_trace(self, trace: Trace, budget: int) -> Trace:
        total = trace.token_size()
        if total <= budget or not trace.bundles:
            return trace

        logger.info(f"Compressing trace from {total} to {budget} tokens")
        share = budget // len(trace.bundles)
        for bundle in sorted(trace.bundles, key=lambda b: b.average_relevancy()):
            if total <= budget:
                break
            before = bundle.token_size()
            if before <= share:
                continue
            await self.fit_bundle(bundle, share)
            total -= before - bundle.token_size()

        logger.info(f"Trace compressed to {trace.token_size()} tokens")
        return trace

    async def fit_bundle(self, bundle: Bundle, budget: int) -> None:
        total = bundle.token_size()
        if total <= budget or not bundle.pages:
            return

        share = budget // len(bundle.pages)
        bundle.rank_pages()
        for page in reversed(bundle.pages):
            if total <= budget:
                break
            before = page.token_size()
            if before <= share:
                continue
            await self.fit_page(page, share)
            total -= before - page.token_size()

    async def fit_page(self, page: PageDigest, budget: int) -> None:
        total = page.token_size()
        if total <= budget or not page.results:
            return

        share = budget // len(page.results)
        for result in sorted(page.results, key=lambda r: r.score):
            if total <= budget:
                break
            before = result.token_size()
            if before <= share:
                continue
            await self.shrink_result(result, share)
            total -= before - result.token_size()
