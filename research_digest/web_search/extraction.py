"""
Extraction-and-bind protocol.

Content is cut into chunks that fit the summary agent's context, each chunk
is sent with the extraction instructions, and the SearchExtraction tool call
in the reply is bound into a structured result. A chunk whose reply cannot
be bound is retried once on a fresh conversation, then dropped.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..agents.model_agent import Conversation, ToolRegistry, bind_tool_result
from ..errors import ExtractionBindError, ModelError, ResearchDigestError
from ..logging_config import get_logger
from ..models.extraction import EXTRACTION_TOOL_NAME, SearchExtraction
from ..models.trace import Result, Summary
from ..tokens import chunk_by_tokens, estimate_tokens

logger = get_logger("research_digest.extraction")


def review_extraction(arguments: Dict[str, Any], conversation: Conversation) -> Dict[str, Any]:
    """Tool handler: accept the call only if it carries a summary and citations."""
    summary = arguments.get("summary")
    if not isinstance(summary, str):
        raise ValueError("summary not found in arguments")
    citations = arguments.get("citations", [])
    if not isinstance(citations, list):
        raise ValueError("citations not found in arguments")
    return {"summary": summary, "citations": citations}


def extraction_registry() -> ToolRegistry:
    """A fresh registry offering only the extraction tool."""
    return ToolRegistry().register(SearchExtraction, review_extraction)


def build_prompt(instructions: str, content: str) -> str:
    return f"{instructions}\n\nExtract key information:\n\n{content}"


@dataclass
class ChunkBatch:
    """Summaries of the chunks that succeeded and the errors of those dropped."""
    summaries: List[str] = field(default_factory=list)
    failures: List[ResearchDigestError] = field(default_factory=list)

    def joined(self) -> str:
        return "\n\n".join(self.summaries)


class Extractor:
    """Runs the extraction protocol over a conversation owned by the caller."""

    def __init__(self, max_attempts: int = 2, max_compression_rounds: int = 3):
        self.max_attempts = max_attempts
        self.max_compression_rounds = max_compression_rounds

    def chunk_limit(self, conversation: Conversation, instructions: str, max_context: int) -> int:
        """Tokens left for content once the system prompt and instructions are counted."""
        overhead = estimate_tokens(conversation.agent.system_prompt)
        overhead += estimate_tokens(build_prompt(instructions, ""))
        return max(max_context - overhead, 1)

    async def summarise_chunk(
        self,
        chunk: str,
        instructions: str,
        max_context: int,
        conversation: Conversation
    ) -> str:
        """
        Summarise one chunk, retrying once when the tool result cannot be bound.

        Raises:
            ExtractionBindError: both attempts came back without a usable
                SearchExtraction call
            ModelError: the model could not be reached
        """
        limit = self.chunk_limit(conversation, instructions, max_context)
        if estimate_tokens(chunk) > limit:
            pieces = chunk_by_tokens(chunk, limit)
            if len(pieces) > 1:
                batch = await self.process_chunks(pieces, conversation, instructions, max_context)
                if not batch.summaries and batch.failures:
                    raise batch.failures[-1]
                return batch.joined()

        prompt = build_prompt(instructions, chunk)
        logger.debug(f"Prompt token size: {estimate_tokens(prompt)}")

        for attempt in range(1, self.max_attempts + 1):
            try:
                reply = await conversation.send_user_message(prompt)
            except ModelError:
                conversation.clear()
                raise

            try:
                extraction = bind_tool_result(reply, EXTRACTION_TOOL_NAME, SearchExtraction)
            except ExtractionBindError as e:
                conversation.clear()
                if attempt < self.max_attempts:
                    logger.warning(f"Extraction bind failed (attempt {attempt}), retrying: {e.message}")
                    continue
                raise

            conversation.clear()
            return extraction.render()

        raise ExtractionBindError("No extraction attempts configured", EXTRACTION_TOOL_NAME)

    async def process_chunks(
        self,
        chunks: List[str],
        conversation: Conversation,
        instructions: str,
        max_context: int
    ) -> ChunkBatch:
        """Summarise chunks in order; failed chunks are dropped and recorded."""
        batch = ChunkBatch()
        for chunk in chunks:
            try:
                batch.summaries.append(
                    await self.summarise_chunk(chunk, instructions, max_context, conversation)
                )
            except ResearchDigestError as e:
                logger.warning(f"Chunk failed: {e.message}")
                batch.failures.append(e)
        return batch

    async def shrink_text(
        self,
        text: str,
        conversation: Conversation,
        instructions: str,
        max_context: int,
        target: Optional[int] = None
    ) -> str:
        """
        Summarise ``text`` and keep re-summarising until it fits.

        Chunks are sized for ``max_context``. The result should fit ``target``
        tokens (default: the context minus the system prompt). Re-summarising
        stops after ``max_compression_rounds`` rounds or when a round no
        longer makes the text smaller.
        """
        limit = self.chunk_limit(conversation, instructions, max_context)
        chunks = chunk_by_tokens(text, limit)
        if not chunks:
            return ""

        if target is None:
            target = max_context - estimate_tokens(conversation.agent.system_prompt)

        summary = (await self.process_chunks(chunks, conversation, instructions, max_context)).joined()

        rounds = 0
        while summary and estimate_tokens(summary) > target and rounds < self.max_compression_rounds:
            rounds += 1
            logger.info(f"Summary too long ({estimate_tokens(summary)} > {target}), chunking again")
            batch = await self.process_chunks(
                chunk_by_tokens(summary, limit), conversation, instructions, max_context
            )
            condensed = batch.joined()
            if not condensed or estimate_tokens(condensed) >= estimate_tokens(summary):
                break
            summary = condensed

        return summary

    async def extract_information(
        self,
        result: Result,
        conversation: Conversation,
        instructions: str,
        max_context: int
    ) -> str:
        """
        Summarise a result once; later calls return the stored summary.

        Returns:
            The summary content, or "" when every chunk failed
        """
        if result.summary is not None:
            return result.summary.content

        start = time.monotonic()
        summary = await self.shrink_text(result.format_info(), conversation, instructions, max_context)
        if not summary:
            return ""

        stored = result.attach_summary(summary, int((time.monotonic() - start) * 1000))
        logger.info(f"Summarized {result.title!r} in {stored.format_duration()}")
        return stored.content

    async def condense(
        self,
        result: Result,
        conversation: Conversation,
        instructions: str,
        max_context: int,
        target: int
    ) -> None:
        """Shrink what the result renders to roughly ``target`` tokens."""
        if result.token_size() <= target:
            return

        start = time.monotonic()
        source = result.body() if result.summary is not None else result.format_info()
        condensed = await self.shrink_text(source, conversation, instructions, max_context, target)
        if not condensed:
            return

        elapsed = int((time.monotonic() - start) * 1000)
        if result.summary is None:
            result.attach_summary(condensed, elapsed)
        elif estimate_tokens(condensed) < result.token_size():
            result.condensed = Summary(content=condensed, duration_ms=elapsed)
