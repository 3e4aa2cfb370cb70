"""
Chat model agents and isolated conversations.

A ModelAgent is one model identity (model + endpoint + system prompt). A
Conversation is a private message history with its own tool registry, so
several workers can talk to agents in parallel without sharing state.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from ..config.settings import Settings, get_settings
from ..errors import ConfigurationError, ExtractionBindError, ModelError
from ..logging_config import get_logger

logger = get_logger("research_digest.agents")

ShapeT = TypeVar("ShapeT", bound=BaseModel)
ToolHandler = Callable[[Dict[str, Any], "Conversation"], Dict[str, Any]]

_THINK_RE = re.compile(r"<think>\s*(.*?)\s*</think>", re.DOTALL)
_TOOL_CALL_RE = re.compile(r"<tool_call>(.*?)</tool_call>", re.DOTALL)


class ModelAgent:
    """One chat model identity reachable through an OpenAI-compatible endpoint."""

    def __init__(
        self,
        name: str,
        model_id: str,
        context_window: int,
        base_url: str,
        api_key: str = "",
        system_prompt: str = "",
        language: str = "English",
        temperature: float = 0.2,
        max_tokens: int = 2000,
        request_timeout: int = 600,
        llm: Optional[Any] = None,
    ):
        if not model_id:
            raise ConfigurationError(f"Agent '{name}' has no model configured")
        self.name = name
        self.model_id = model_id
        self.context_window = context_window
        self.base_url = base_url
        self.api_key = api_key
        self.system_prompt = system_prompt
        self.language = language
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self._llm = llm

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> List["ModelAgent"]:
        """Build one summary agent per configured endpoint."""
        settings = settings or get_settings()
        agent_settings = settings.summary_agent
        if not agent_settings.base_urls:
            raise ConfigurationError("No summary agent endpoints configured")

        primary = cls(
            name=agent_settings.name,
            model_id=agent_settings.model_id,
            context_window=agent_settings.context_window,
            base_url=agent_settings.base_urls[0],
            api_key=settings.api_keys.model_api_key.get_secret_value(),
            system_prompt=agent_settings.system_prompt,
            language=agent_settings.reply_language,
            temperature=agent_settings.temperature,
            max_tokens=agent_settings.max_tokens,
            request_timeout=agent_settings.request_timeout,
        )
        return [primary] + [primary.with_base_url(url) for url in agent_settings.base_urls[1:]]

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.model_id,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.request_timeout,
                openai_api_key=self.api_key,
                openai_api_base=self.base_url,
            )
        return self._llm

    def context_portion(self, percentage: float) -> int:
        """Tokens corresponding to ``percentage`` of the context window."""
        if self.context_window <= 0 or percentage <= 0:
            return 0
        return int(self.context_window * (percentage / 100))

    def with_base_url(self, base_url: str) -> "ModelAgent":
        """Clone this identity onto another endpoint."""
        return ModelAgent(
            name=self.name,
            model_id=self.model_id,
            context_window=self.context_window,
            base_url=base_url,
            api_key=self.api_key,
            system_prompt=self.system_prompt,
            language=self.language,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            request_timeout=self.request_timeout,
            llm=self._llm if self._llm is not None and base_url == self.base_url else None,
        )

    def chat_model(self, tools: List[Type[BaseModel]]) -> Any:
        if not tools:
            return self.llm
        return self.llm.bind_tools(tools)

    def __repr__(self) -> str:
        return f"ModelAgent(name={self.name!r}, model={self.model_id!r}, base_url={self.base_url!r})"


class ToolRegistry:
    """Tools offered to the model plus the handlers that post-process their calls."""

    def __init__(self):
        self._schemas: Dict[str, Type[BaseModel]] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, schema: Type[BaseModel], handler: Optional[ToolHandler] = None) -> "ToolRegistry":
        name = schema.__name__
        self._schemas[name] = schema
        if handler is not None:
            self._handlers[name] = handler
        return self

    def schemas(self) -> List[Type[BaseModel]]:
        return list(self._schemas.values())

    def handler(self, name: str) -> Optional[ToolHandler]:
        return self._handlers.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._schemas


@dataclass
class ChatReply:
    """Decoded model reply."""
    role: str
    content: str
    thinking: str = ""
    raw: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)


def decode_reply(message: AIMessage) -> ChatReply:
    """
    Decode an AIMessage into content, thinking and tool calls.

    Native tool calls are kept; ``<tool_call>{json}</tool_call>`` blocks in
    the text are promoted to tool calls, ``<think>`` blocks become the
    thinking trace, and both are stripped from the final content.
    """
    raw = message.content if isinstance(message.content, str) else json.dumps(message.content)

    tool_calls: List[Dict[str, Any]] = [
        {"name": call["name"], "args": dict(call.get("args") or {}), "id": call.get("id")}
        for call in (message.tool_calls or [])
    ]
    for block in _TOOL_CALL_RE.findall(raw):
        try:
            parsed = json.loads(block.strip())
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse tool_call JSON: {e}")
            continue
        if isinstance(parsed, dict) and parsed.get("name"):
            tool_calls.append({
                "name": parsed["name"],
                "args": parsed.get("arguments") or parsed.get("args") or {},
                "id": None,
            })

    thinking_match = _THINK_RE.search(raw)
    thinking = thinking_match.group(1).strip() if thinking_match else ""

    content = _THINK_RE.sub("", raw)
    content = _TOOL_CALL_RE.sub("", content).strip()

    return ChatReply(
        role="assistant",
        content=content,
        thinking=thinking,
        raw=raw,
        tool_calls=tool_calls,
    )


def bind_tool_result(reply: ChatReply, tool_name: str, shape: Type[ShapeT]) -> ShapeT:
    """
    Populate ``shape`` from the result of the tool call named ``tool_name``.

    Raises:
        ExtractionBindError: no tool calls, no call with that name, the call
            has no result, or the result does not validate against ``shape``
    """
    if not tool_name:
        raise ExtractionBindError("Tool call name cannot be empty", tool_name)
    if not reply.tool_calls:
        raise ExtractionBindError(
            "No tool calls found in message",
            tool_name,
            context={"content": reply.content[:200]},
        )

    seen_call = False
    for call in reply.tool_calls:
        if call.get("name") != tool_name:
            continue
        seen_call = True
        result = call.get("result")
        if result is None:
            continue
        try:
            return shape.model_validate(result)
        except ValidationError as e:
            raise ExtractionBindError(
                f"Failed to bind tool result for {tool_name}: {e.error_count()} errors",
                tool_name,
                context={"errors": e.errors()},
            ) from e

    if seen_call:
        raise ExtractionBindError(f"Tool call {tool_name} has no result", tool_name)
    raise ExtractionBindError(f"Tool call {tool_name} not found in message", tool_name)


class Conversation:
    """Message history with one agent, owned by a single worker."""

    def __init__(self, agent: ModelAgent, registry: Optional[ToolRegistry] = None):
        if agent is None:
            raise ConfigurationError("Conversation requires an agent")
        self.agent = agent
        self.registry = registry or ToolRegistry()
        self.messages: List[BaseMessage] = []
        self.clear()

    def clear(self) -> None:
        """Drop the history, keeping only the agent's system prompt."""
        self.messages = []
        if self.agent.system_prompt:
            self.messages.append(SystemMessage(content=self.agent.system_prompt))

    def add_message(self, role: str, content: str) -> None:
        if role == "user":
            now = datetime.now().astimezone().strftime("%a, %Y-%m-%d %I:%M:%S %p %Z")
            content = (
                f"\n**The User's Current time and date is:** {now}\n"
                f"**The User Speaks:**\n{self.agent.language}\n\n{content}\n"
            )
            self.messages.append(HumanMessage(content=content))
        elif role == "assistant":
            self.messages.append(AIMessage(content=content))
        elif role == "system":
            self.messages.append(SystemMessage(content=content))
        else:
            raise ValueError(f"Unknown message role: {role}")

    async def send_message(self, role: str, content: str) -> ChatReply:
        """Send one turn and return the decoded reply with tool results filled in."""
        self.add_message(role, content)
        model = self.agent.chat_model(self.registry.schemas())

        try:
            response = await model.ainvoke(self.messages)
        except Exception as e:
            raise ModelError(
                f"Chat request to {self.agent.name} failed: {e}",
                context={"base_url": self.agent.base_url},
            ) from e

        reply = decode_reply(response)
        history = f"{reply.thinking}\n{reply.content}".strip() if reply.thinking else reply.content
        self.messages.append(AIMessage(content=history))
        self.run_tools(reply)
        return reply

    async def send_user_message(self, content: str) -> ChatReply:
        return await self.send_message("user", f"**User Prompt**:\n {content}")

    def run_tools(self, reply: ChatReply) -> None:
        """Execute the registered handler of every tool call and store its result."""
        for call in reply.tool_calls:
            name = call.get("name", "")
            handler = self.registry.handler(name)
            if handler is None:
                logger.debug(f"Tool {name} has no handler")
                continue
            call["caller"] = self.agent.name
            try:
                call["result"] = handler(call.get("args") or {}, self)
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(f"Error calling {name}: {e}")
