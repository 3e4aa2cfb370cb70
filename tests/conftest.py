"""
Shared fakes for the research pipeline tests.

No test talks to a real search engine, web site or model server: search,
scrape, embed and chat are replaced with in-memory fakes that record their
calls.
"""

import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from langchain_core.messages import AIMessage

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from research_digest.agents.model_agent import ModelAgent  # noqa: E402
from research_digest.errors import EmbeddingError, ScrapeError, SearchError  # noqa: E402
from research_digest.models.trace import Result  # noqa: E402

_URL_RE = re.compile(r"URL: (\S+)")


def extraction_message(summary: str, citations: Optional[List[Dict[str, Any]]] = None) -> AIMessage:
    """A reply carrying a native SearchExtraction tool call."""
    return AIMessage(
        content="",
        tool_calls=[{
            "name": "SearchExtraction",
            "args": {"summary": summary, "citations": citations or []},
            "id": "call_1",
        }],
    )


def refusal_message(text: str = "I cannot help with that.") -> AIMessage:
    return AIMessage(content=text)


class FakeChatModel:
    """
    Stands in for a ChatOpenAI model.

    ``replies`` are handed out in order; once exhausted, ``responder`` is
    called with the prompt text. The default responder summarizes the page
    by its URL.
    """

    def __init__(
        self,
        replies: Optional[List[Any]] = None,
        responder: Optional[Callable[[str], AIMessage]] = None
    ):
        self.replies = list(replies or [])
        self.responder = responder or self.default_responder
        self.calls: List[List[Any]] = []
        self.bound_tools: List[Any] = []

    @staticmethod
    def default_responder(prompt: str) -> AIMessage:
        match = _URL_RE.search(prompt)
        url = match.group(1) if match else "unknown"
        return extraction_message(
            f"Summary of {url}",
            [{"content": "quoted", "url": url, "relevance": 0.9}],
        )

    def bind_tools(self, tools):
        self.bound_tools = list(tools)
        return self

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return self.responder(messages[-1].content)

    @property
    def call_count(self) -> int:
        return len(self.calls)


class FakeEmbeddingAgent:
    """
    Embeds text by keyword lookup.

    The first key found in the text decides the vector; unknown text gets
    ``default``.
    """

    def __init__(self, vectors: Dict[str, List[float]], default=None, fail_on: Optional[str] = None):
        self.vectors = vectors
        self.default = default if default is not None else [0.0, 0.0, 1.0]
        self.fail_on = fail_on
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[List[float]]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingError(f"embedding failed for {self.fail_on}")
        if not text.strip():
            return []
        for key, vector in self.vectors.items():
            if key in text:
                return [list(vector)]
        return [list(self.default)]


class FakeSearchEngine:
    """Returns canned results per (query, page) and records every call."""

    def __init__(self, pages: Dict[int, List[Dict[str, str]]], fail_pages=()):
        self.pages = pages
        self.fail_pages = set(fail_pages)
        self.calls: List[tuple] = []

    async def search(self, query: str, page: int = 1) -> List[Result]:
        self.calls.append((query, page))
        if page in self.fail_pages:
            raise SearchError("search engine unavailable", query, page)
        return [Result(**item) for item in self.pages.get(page, [])]


class FakeSiteVisitor:
    """Serves page text from a dict and rejects plain HTTP like the real visitor."""

    def __init__(self, content: Dict[str, str]):
        self.content = content
        self.calls: List[str] = []

    async def visit(self, url: str) -> str:
        self.calls.append(url)
        if not url.startswith("https://"):
            raise ScrapeError(f"Skipping non-HTTPS URL: {url}", url)
        if url not in self.content:
            raise ScrapeError(f"No content found for URL: {url}", url)
        return self.content[url]


def make_agent(llm: Any, name: str = "summarizer", context_window: int = 8192, **kwargs) -> ModelAgent:
    return ModelAgent(
        name=name,
        model_id="test-model",
        context_window=context_window,
        base_url="http://localhost:11434/v1",
        system_prompt=kwargs.pop("system_prompt", "You extract facts."),
        llm=llm,
        **kwargs,
    )


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def agent(chat_model):
    return make_agent(chat_model)


@pytest.fixture
def sample_extraction_args():
    return {
        "summary": "The borrow checker enforces ownership rules.",
        "citations": [
            {"content": "References must not outlive their owner.", "url": "https://doc.rust-lang.org", "relevance": 0.95},
        ],
    }
