"""
Search tool entry point for a calling conversation.

Models call the search tool with loosely typed arguments: queries arrive as
a list, a JSON string, a JSON string holding a JSON list, or a Python style
single-quoted list; the page arrives as an int or a numeric string.
"""

import json
from typing import Any, Dict, List, Optional

from ..logging_config import get_logger
from .orchestrator import QueryOrchestrator

logger = get_logger("research_digest.tool")

COMPLETED_HEADER = "Search results Completed."


def normalize_queries(raw: Any) -> List[str]:
    """
    Coerce the ``queries`` argument into a list of query strings.

    Raises:
        ValueError: the value is not one of the accepted shapes
    """
    if isinstance(raw, (list, tuple)):
        return [str(item) for item in raw]

    if not isinstance(raw, str):
        raise ValueError(f"Unexpected queries type: {type(raw).__name__}")

    trimmed = raw.strip()
    if trimmed.startswith("['") and trimmed.endswith("']"):
        trimmed = trimmed.replace("'", '"')

    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError as e:
        raise ValueError("Invalid query format or unsupported string structure") from e

    if isinstance(parsed, str):
        try:
            parsed = json.loads(parsed)
        except json.JSONDecodeError as e:
            raise ValueError("Invalid query format or unsupported string structure") from e

    if not isinstance(parsed, list):
        raise ValueError("Invalid query format or unsupported string structure")
    return [str(item) for item in parsed]


def parse_page_number(raw: Any) -> int:
    """Page argument as an int; missing or empty means page 1."""
    if raw is None or raw == "":
        return 1
    if isinstance(raw, bool):
        raise ValueError("Invalid page parameter")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError as e:
            raise ValueError("Invalid page parameter") from e
    raise ValueError("Invalid page parameter")


class ResearchTool:
    """Runs a research session from tool-call arguments and returns the digest."""

    def __init__(self, orchestrator: QueryOrchestrator, budget: Optional[int] = None):
        self.orchestrator = orchestrator
        self.budget = budget

    async def run(self, arguments: Dict[str, Any], prompt: str) -> str:
        """
        Run the queries in ``arguments`` on behalf of ``prompt``.

        Args:
            arguments: Tool-call arguments (``queries``, optional ``page``
                and ``reason``)
            prompt: The user prompt that triggered the search

        Returns:
            Completion header followed by the search summary

        Raises:
            ValueError: missing prompt or malformed arguments
        """
        if not prompt:
            raise ValueError("prompt is required and must be a string")

        queries = normalize_queries(arguments.get("queries"))
        pages = parse_page_number(arguments.get("page"))
        reason = arguments.get("reason")
        if not isinstance(reason, str):
            reason = ""

        logger.info(f"Total Queries: {len(queries)}")
        trace = await self.orchestrator.run_queries(queries, prompt, reason, pages)
        digest = await self.orchestrator.summarize_trace(trace, self.budget)
        return f"{COMPLETED_HEADER}\n\n**Search Summary**:\n{digest}"
