"""Tests for the search tool entry point."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from research_digest.models.trace import Trace
from research_digest.web_search.research_tool import (
    ResearchTool,
    normalize_queries,
    parse_page_number,
)


class TestNormalizeQueries:
    """Test the accepted shapes of the queries argument."""

    @pytest.mark.parametrize("raw,expected", [
        (["rust", "go"], ["rust", "go"]),
        (("rust",), ["rust"]),
        ([1, "two"], ["1", "two"]),
        ('["rust borrow checker", "lifetimes"]', ["rust borrow checker", "lifetimes"]),
        ("['rust', 'go']", ["rust", "go"]),
        ('"[\\"nested\\", \\"list\\"]"', ["nested", "list"]),
        ("  [\"padded\"]  ", ["padded"]),
    ])
    def test_accepted_shapes(self, raw, expected):
        assert normalize_queries(raw) == expected

    @pytest.mark.parametrize("raw", [None, 42, "just a sentence", '{"q": "rust"}', '"plain string"'])
    def test_rejected_shapes(self, raw):
        with pytest.raises(ValueError):
            normalize_queries(raw)


class TestParsePageNumber:
    """Test the page argument."""

    @pytest.mark.parametrize("raw,expected", [(None, 1), ("", 1), (3, 3), ("2", 2), (" 4 ", 4), (2.0, 2)])
    def test_valid(self, raw, expected):
        assert parse_page_number(raw) == expected

    @pytest.mark.parametrize("raw", ["two", True, [1]])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_page_number(raw)


class TestResearchTool:
    """Test the tool run end to end against a mocked orchestrator."""

    @pytest.fixture
    def orchestrator(self):
        orchestrator = MagicMock()
        orchestrator.run_queries = AsyncMock(return_value=Trace(user_prompt="prompt"))
        orchestrator.summarize_trace = AsyncMock(return_value="DIGEST")
        return orchestrator

    @pytest.mark.asyncio
    async def test_run_formats_summary(self, orchestrator):
        tool = ResearchTool(orchestrator, budget=500)

        output = await tool.run({"queries": "['rust']", "page": "2", "reason": "background"}, "prompt")

        assert output == "Search results Completed.\n\n**Search Summary**:\nDIGEST"
        orchestrator.run_queries.assert_awaited_once_with(["rust"], "prompt", "background", 2)
        orchestrator.summarize_trace.assert_awaited_once()
        assert orchestrator.summarize_trace.await_args.args[1] == 500

    @pytest.mark.asyncio
    async def test_reason_defaults_to_empty(self, orchestrator):
        await ResearchTool(orchestrator).run({"queries": ["rust"], "reason": 7}, "prompt")

        orchestrator.run_queries.assert_awaited_once_with(["rust"], "prompt", "", 1)

    @pytest.mark.asyncio
    async def test_prompt_required(self, orchestrator):
        with pytest.raises(ValueError):
            await ResearchTool(orchestrator).run({"queries": ["rust"]}, "")

    @pytest.mark.asyncio
    async def test_bad_queries_rejected_before_searching(self, orchestrator):
        with pytest.raises(ValueError):
            await ResearchTool(orchestrator).run({"queries": 5}, "prompt")

        orchestrator.run_queries.assert_not_awaited()
