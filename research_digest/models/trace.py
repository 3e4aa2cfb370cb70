"""
Research trace data model.

Trace -> Bundle -> PageDigest -> Result, each level exclusively owning the
next. Sizes are token estimates summed over the Results, relevance is the
cosine-similarity score assigned by the ranker.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Optional

from ..tokens import estimate_tokens

DIVIDER = "---"


def format_duration(duration_ms: int) -> str:
    """Format milliseconds as a short human readable string."""
    if duration_ms <= 0:
        return "0ms"
    delta = timedelta(milliseconds=duration_ms)
    if delta < timedelta(seconds=1):
        return f"{duration_ms}ms"
    if delta < timedelta(minutes=1):
        return f"{delta.total_seconds():.1f}s"
    minutes, seconds = divmod(int(delta.total_seconds()), 60)
    return f"{minutes}m{seconds}s"


@dataclass(frozen=True)
class Summary:
    """Generated summary content and how long it took (ms)."""
    content: str
    duration_ms: int = 0

    def format_duration(self) -> str:
        return format_duration(self.duration_ms)


@dataclass
class Result:
    """One retrieved document and everything derived from it."""
    title: str
    url: str
    snippet: str = ""
    content: str = ""
    embeddings: List[List[float]] = field(default_factory=list)
    summary: Optional[Summary] = None
    condensed: Optional[Summary] = None
    score: float = 0.0

    def attach_summary(self, content: str, duration_ms: int = 0) -> Summary:
        """Attach a summary once; later calls return the existing one."""
        if self.summary is None:
            self.summary = Summary(content=content, duration_ms=duration_ms)
        return self.summary

    def summary_text(self) -> str:
        return self.summary.content if self.summary else ""

    def body(self) -> str:
        """Text rendered into the digest: condensed, then summary, then raw content."""
        if self.condensed and self.condensed.content:
            return self.condensed.content
        if self.summary and self.summary.content:
            return self.summary.content
        return self.content

    def token_size(self) -> int:
        return estimate_tokens(self.body())

    def format_info(self) -> str:
        return (
            f"Title: {self.title}\nURL: {self.url}\nContent: {self.content}\n\n"
            f"**End of {self.title}**\n\n"
        )

    def render(self) -> str:
        return f"\n{DIVIDER}\n### Title:\n{self.title}\n#### Content:\n{self.body()}\n{DIVIDER}\n"


@dataclass
class PageDigest:
    """One page of ranked results for one query."""
    page: int
    results: List[Result] = field(default_factory=list)
    summary: Optional[Summary] = None

    @property
    def average_relevancy(self) -> float:
        """Mean result score; an empty digest is 0.0."""
        if not self.results:
            return 0.0
        return sum(r.score for r in self.results) / len(self.results)

    def token_size(self) -> int:
        return sum(r.token_size() for r in self.results)

    def render(self) -> str:
        parts = [f"\n{DIVIDER}\n ## Page: {self.page}\n"]
        if self.summary and self.summary.content:
            parts.append(f"#### Page Summary:\n{self.summary.content}\n")
        if not self.results:
            parts.append("No relevant results on this page.\n")
        parts.extend(r.render() for r in self.results)
        parts.append(DIVIDER)
        return "".join(parts)


@dataclass
class Bundle:
    """All pages searched for one literal query string."""
    query: str
    pages: List[PageDigest] = field(default_factory=list)

    def attach_page(self, digest: PageDigest) -> "Bundle":
        """Attach a page, replacing an existing digest for the same page number."""
        self.pages = [p for p in self.pages if p.page != digest.page]
        self.pages.append(digest)
        self.pages.sort(key=lambda p: p.page)
        return self

    def page(self, number: int) -> Optional[PageDigest]:
        for digest in self.pages:
            if digest.page == number:
                return digest
        return None

    def results(self) -> List[Result]:
        return [r for digest in self.pages for r in digest.results]

    def average_relevancy(self) -> float:
        if not self.pages:
            return 0.0
        return sum(p.average_relevancy for p in self.pages) / len(self.pages)

    def rank_pages(self) -> None:
        """Re-order pages by descending average relevancy."""
        self.pages.sort(key=lambda p: p.average_relevancy, reverse=True)

    def token_size(self) -> int:
        return sum(p.token_size() for p in self.pages)

    def render(self) -> str:
        parts = [f"\n{DIVIDER}\n# **Search Results For: {self.query}**\n"]
        parts.extend(p.render() for p in self.pages)
        return "".join(parts)


@dataclass
class Trace:
    """One research session across one or more queries."""
    user_prompt: str
    reason: str = ""
    bundles: List[Bundle] = field(default_factory=list)
    duration_ms: int = 0
    summary_agents: List[Any] = field(default_factory=list, repr=False)
    embedding_agent: Any = field(default=None, repr=False)

    def attach_bundle(self, bundle: Bundle) -> "Trace":
        self.bundles.append(bundle)
        return self

    def bundle(self, query: str) -> Optional[Bundle]:
        for bundle in self.bundles:
            if bundle.query == query:
                return bundle
        return None

    def bundle_for(self, query: str) -> Bundle:
        """Return the bundle for ``query``, attaching a new one if missing."""
        bundle = self.bundle(query)
        if bundle is None:
            bundle = Bundle(query=query)
            self.attach_bundle(bundle)
        return bundle

    def results(self) -> List[Result]:
        return [r for bundle in self.bundles for r in bundle.results()]

    def is_empty(self) -> bool:
        return not self.results()

    def average_relevancy(self) -> float:
        if not self.bundles:
            return 0.0
        return sum(b.average_relevancy() for b in self.bundles) / len(self.bundles)

    def token_size(self) -> int:
        return sum(b.token_size() for b in self.bundles)

    def render_overhead(self) -> int:
        """
        Tokens the rendered digest spends outside result bodies.

        Titles, headings and dividers are not counted by ``token_size``.
        One extra token per result absorbs the rounding of summing
        per-body estimates.
        """
        return estimate_tokens(self.render()) - self.token_size() + len(self.results())

    def drop_least_relevant(self) -> Optional[Result]:
        """Remove and return the lowest scoring result, or None if there is none."""
        candidates = [
            (result.score, digest, result)
            for bundle in self.bundles
            for digest in bundle.pages
            for result in digest.results
        ]
        if not candidates:
            return None
        _, digest, result = min(candidates, key=lambda c: c[0])
        digest.results = [r for r in digest.results if r is not result]
        return result

    def format_duration(self) -> str:
        return format_duration(self.duration_ms)

    def render(self) -> str:
        parts = [f"# **UserPrompt: {self.user_prompt}**\n ## Reason: {self.reason}\n"]
        parts.extend(b.render() for b in self.bundles)
        return "".join(parts)
