"""Tests for model agents, reply decoding and conversations."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from conftest import FakeChatModel, extraction_message, make_agent, refusal_message
from research_digest.agents.model_agent import (
    ChatReply,
    Conversation,
    ModelAgent,
    ToolRegistry,
    bind_tool_result,
    decode_reply,
)
from research_digest.config.settings import Settings, SummaryAgentSettings
from research_digest.errors import ConfigurationError, ExtractionBindError, ModelError
from research_digest.models.extraction import SearchExtraction
from research_digest.web_search.extraction import extraction_registry


class TestModelAgent:
    """Test agent identity helpers."""

    def test_requires_model(self):
        with pytest.raises(ConfigurationError):
            ModelAgent(name="x", model_id="", context_window=1000, base_url="http://localhost")

    def test_context_portion(self):
        agent = make_agent(FakeChatModel(), context_window=8000)
        assert agent.context_portion(75) == 6000
        assert agent.context_portion(0) == 0

    def test_with_base_url_clones_identity(self):
        agent = make_agent(FakeChatModel())

        clone = agent.with_base_url("http://localhost:11436/v1")

        assert clone.base_url == "http://localhost:11436/v1"
        assert clone.model_id == agent.model_id
        assert clone.system_prompt == agent.system_prompt

    def test_from_settings_one_agent_per_endpoint(self):
        settings = Settings(summary_agent=SummaryAgentSettings(
            base_urls=["http://a:11434/v1", "http://b:11434/v1"],
        ))

        agents = ModelAgent.from_settings(settings)

        assert [a.base_url for a in agents] == ["http://a:11434/v1", "http://b:11434/v1"]

    def test_from_settings_without_endpoints(self):
        settings = Settings(summary_agent=SummaryAgentSettings(base_urls=[]))
        with pytest.raises(ConfigurationError):
            ModelAgent.from_settings(settings)

    def test_llm_is_chat_openai(self):
        agent = ModelAgent(
            name="x",
            model_id="qwen3:8b",
            context_window=8192,
            base_url="http://localhost:11434/v1",
            api_key="ollama",
        )
        assert isinstance(agent.llm, ChatOpenAI)


class TestDecodeReply:
    """Test decoding of thinking blocks and tool calls."""

    def test_native_tool_calls(self):
        reply = decode_reply(extraction_message("short"))

        assert reply.tool_calls[0]["name"] == "SearchExtraction"
        assert reply.tool_calls[0]["args"]["summary"] == "short"

    def test_think_and_text_tool_call_blocks(self):
        message = AIMessage(content=(
            "<think>\nplanning\n</think>Here you go."
            '<tool_call>{"name": "SearchExtraction", "arguments": {"summary": "s"}}</tool_call>'
        ))

        reply = decode_reply(message)

        assert reply.thinking == "planning"
        assert reply.content == "Here you go."
        assert reply.tool_calls == [{"name": "SearchExtraction", "args": {"summary": "s"}, "id": None}]

    def test_malformed_tool_call_block_is_ignored(self):
        reply = decode_reply(AIMessage(content="<tool_call>{not json}</tool_call>"))
        assert reply.tool_calls == []


class TestBindToolResult:
    """Test binding a tool result into a shape."""

    def _reply(self, calls):
        return ChatReply(role="assistant", content="", tool_calls=calls)

    def test_binds_result(self, sample_extraction_args):
        reply = self._reply([{"name": "SearchExtraction", "args": {}, "result": sample_extraction_args}])

        extraction = bind_tool_result(reply, "SearchExtraction", SearchExtraction)

        assert extraction.summary == sample_extraction_args["summary"]
        assert len(extraction.citations) == 1

    def test_skips_matching_call_without_result(self, sample_extraction_args):
        reply = self._reply([
            {"name": "SearchExtraction", "args": {"summary": "rejected"}},
            {"name": "SearchExtraction", "args": {}, "result": sample_extraction_args},
        ])

        extraction = bind_tool_result(reply, "SearchExtraction", SearchExtraction)

        assert extraction.summary == sample_extraction_args["summary"]

    def test_reports_missing_result_when_no_call_ran(self):
        reply = self._reply([
            {"name": "SearchExtraction", "args": {}},
            {"name": "SearchExtraction", "args": {}},
        ])

        with pytest.raises(ExtractionBindError, match="has no result"):
            bind_tool_result(reply, "SearchExtraction", SearchExtraction)

    @pytest.mark.parametrize("calls", [
        [],
        [{"name": "Other", "args": {}, "result": {"summary": "s"}}],
        [{"name": "SearchExtraction", "args": {}}],
        [{"name": "SearchExtraction", "args": {}, "result": {"citations": "nope"}}],
    ])
    def test_bind_failures(self, calls):
        with pytest.raises(ExtractionBindError):
            bind_tool_result(self._reply(calls), "SearchExtraction", SearchExtraction)

    def test_empty_tool_name(self):
        with pytest.raises(ExtractionBindError):
            bind_tool_result(self._reply([{"name": "", "result": {}}]), "", SearchExtraction)


class TestConversation:
    """Test conversation history and tool execution."""

    def test_requires_agent(self):
        with pytest.raises(ConfigurationError):
            Conversation(None)

    def test_starts_with_system_prompt(self, agent):
        conversation = Conversation(agent)
        assert len(conversation.messages) == 1
        assert isinstance(conversation.messages[0], SystemMessage)

    def test_user_message_carries_time_and_language(self, agent):
        conversation = Conversation(agent)
        conversation.add_message("user", "hello")

        content = conversation.messages[-1].content
        assert isinstance(conversation.messages[-1], HumanMessage)
        assert "**The User's Current time and date is:**" in content
        assert "English" in content
        assert "hello" in content

    def test_unknown_role(self, agent):
        with pytest.raises(ValueError):
            Conversation(agent).add_message("tool", "x")

    @pytest.mark.asyncio
    async def test_send_runs_tool_handler(self, sample_extraction_args):
        llm = FakeChatModel(replies=[extraction_message(
            sample_extraction_args["summary"], sample_extraction_args["citations"]
        )])
        conversation = Conversation(make_agent(llm), extraction_registry())

        reply = await conversation.send_user_message("Summarize this")

        assert reply.tool_calls[0]["result"]["summary"] == sample_extraction_args["summary"]
        assert reply.tool_calls[0]["caller"] == "summarizer"
        assert llm.bound_tools == [SearchExtraction]
        assert len(conversation.messages) == 3

    @pytest.mark.asyncio
    async def test_handler_rejection_leaves_no_result(self):
        message = AIMessage(content="", tool_calls=[{
            "name": "SearchExtraction", "args": {"summary": 42}, "id": "call_1",
        }])
        conversation = Conversation(make_agent(FakeChatModel(replies=[message])), extraction_registry())

        reply = await conversation.send_user_message("Summarize this")

        assert "result" not in reply.tool_calls[0]

    @pytest.mark.asyncio
    async def test_transport_failure_is_model_error(self):
        llm = FakeChatModel(replies=[ConnectionError("refused")])
        conversation = Conversation(make_agent(llm))

        with pytest.raises(ModelError):
            await conversation.send_user_message("hi")

    @pytest.mark.asyncio
    async def test_clear_resets_history(self):
        conversation = Conversation(make_agent(FakeChatModel(replies=[refusal_message()])))
        await conversation.send_user_message("hi")

        conversation.clear()

        assert len(conversation.messages) == 1


class TestToolRegistry:
    """Test tool registration."""

    def test_register_by_schema_name(self):
        registry = ToolRegistry().register(SearchExtraction)

        assert "SearchExtraction" in registry
        assert registry.schemas() == [SearchExtraction]
        assert registry.handler("SearchExtraction") is None

    def test_registries_are_independent(self):
        first = extraction_registry()
        second = ToolRegistry()
        assert "SearchExtraction" in first
        assert "SearchExtraction" not in second
