"""
Concurrent summarization pool.

One worker per summary agent, each with its own conversation, pulling
results from a bounded queue. ``summarize_all`` returns only after every
submitted result has been processed.
"""

import asyncio
from typing import List, Optional

from ..agents.model_agent import Conversation, ModelAgent
from ..errors import ConfigurationError, ResearchDigestError
from ..logging_config import get_logger
from ..models.trace import Result
from .extraction import Extractor, extraction_registry

logger = get_logger("research_digest.pool")


class SummarizationPool:
    """Fans summarization of ranked results out to a fixed set of agents."""

    def __init__(
        self,
        agents: List[ModelAgent],
        extractor: Optional[Extractor] = None,
        instructions: str = "",
        context_percentage: float = 75.0,
        queue_size: int = 8
    ):
        if not agents or any(agent is None for agent in agents):
            raise ConfigurationError("Summarization pool requires at least one summary agent")
        self.agents = list(agents)
        self.extractor = extractor or Extractor()
        self.instructions = instructions
        self.context_percentage = context_percentage
        self.queue_size = queue_size

    @property
    def worker_count(self) -> int:
        return len(self.agents)

    async def _worker(
        self,
        worker_id: int,
        conversation: Conversation,
        queue: "asyncio.Queue[Result]"
    ) -> None:
        max_context = conversation.agent.context_portion(self.context_percentage)
        while True:
            result = await queue.get()
            try:
                logger.info(f"Worker {worker_id} summarizing: {result.title} URL: {result.url}")
                await self.extractor.extract_information(
                    result, conversation, self.instructions, max_context
                )
            except ResearchDigestError as e:
                logger.warning(f"Worker {worker_id} failed on {result.url}: {e.message}")
            except Exception:
                logger.exception(f"Worker {worker_id} crashed on {result.url}")
            finally:
                queue.task_done()

    async def summarize_all(self, results: List[Result]) -> List[Result]:
        """
        Summarize every result that has no summary yet.

        Results are mutated in place and keep their order. Per-result
        failures are logged and leave that result without a summary.

        Args:
            results: Ranked results

        Returns:
            The same list
        """
        pending = [r for r in results if r.summary is None]
        if not pending:
            return results

        queue: "asyncio.Queue[Result]" = asyncio.Queue(maxsize=self.queue_size)
        workers = [
            asyncio.create_task(
                self._worker(i, Conversation(agent, extraction_registry()), queue)
            )
            for i, agent in enumerate(self.agents)
        ]

        try:
            for result in pending:
                await queue.put(result)
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        done = sum(1 for r in pending if r.summary is not None)
        logger.info(f"Summarized {done}/{len(pending)} results with {self.worker_count} workers")
        return results
