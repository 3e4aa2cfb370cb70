"""
Embedding-based relevance ranking of search results.
"""

from typing import List, Sequence

import numpy as np

from ..errors import EmbeddingError, RankingError
from ..logging_config import get_logger
from ..models.trace import Result

logger = get_logger("research_digest.ranker")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors, in [-1, 1].

    Defined as 0.0 when either vector has zero norm.
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def average_combo_score(
    embeddings: Sequence[Sequence[float]],
    match: Sequence[Sequence[float]]
) -> float:
    """Mean cosine similarity over every pair drawn from the two vector lists."""
    total = 0.0
    comparisons = 0
    for vec_a in embeddings:
        if len(vec_a) == 0:
            continue
        for vec_b in match:
            if len(vec_b) == 0:
                continue
            total += cosine_similarity(vec_a, vec_b)
            comparisons += 1

    if comparisons == 0:
        return 0.0
    return total / comparisons


class RelevanceRanker:
    """Scores results against a query with the embedding agent."""

    def __init__(self, embedding_agent):
        self.embedding_agent = embedding_agent

    async def rank(
        self,
        results: List[Result],
        query: str,
        threshold: float
    ) -> List[Result]:
        """
        Keep the results whose score reaches ``threshold`` percent.

        Results without embeddings are skipped entirely (not scored). The
        sort is stable, so equal scores keep their search order.

        Args:
            results: Scraped and embedded results
            query: Query text
            threshold: Minimum relevance percentage (0-100)

        Returns:
            Results at or above the threshold, by descending score

        Raises:
            RankingError: the query could not be embedded
        """
        minimum = threshold / 100.0

        try:
            query_embeddings = await self.embedding_agent.embed(query)
        except EmbeddingError as e:
            raise RankingError(f"Ranking aborted, query embedding failed: {e.message}") from e

        ranked: List[Result] = []
        for result in results:
            if not result.embeddings:
                continue
            result.score = average_combo_score(query_embeddings, result.embeddings)
            if result.score < minimum:
                logger.debug(f"Dropping {result.title!r} (score {result.score:.4f})")
                continue
            logger.info(f"Ranking result: {result.title} score: {result.score:.4f}")
            ranked.append(result)

        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked
