"""
Pydantic models for structured extraction output from the summary agent.
The SearchExtraction model doubles as the tool schema bound to the model.
"""

from typing import List

from pydantic import AliasChoices, BaseModel, Field, field_validator


class Citation(BaseModel):
    """A quoted passage from the page with its source and relevance."""

    content: str = Field(
        ...,
        validation_alias=AliasChoices("content", "extracted_content"),
        description="Quoted passage taken verbatim from the page"
    )
    url: str = Field(
        default="",
        validation_alias=AliasChoices("url", "source"),
        description="URL of the page the passage comes from"
    )
    relevance: float = Field(
        default=0.0,
        description="How relevant the passage is to the request, 0 to 1"
    )

    @field_validator("relevance", mode="before")
    @classmethod
    def coerce_relevance(cls, v):
        # Some models answer "0.8" or null instead of a number
        if v is None or v == "":
            return 0.0
        return float(v)


class SearchExtraction(BaseModel):
    """Extract a short summary and supporting citations from a web page.

    Call this tool with the key information found in the provided content.
    """

    summary: str = Field(..., description="Short summary of the relevant information")
    citations: List[Citation] = Field(
        default_factory=list,
        description="Passages that support the summary"
    )

    def join_citations(self) -> str:
        return "".join(
            f"Content: {c.content}\nURL: {c.url}\nRelevance: {c.relevance:.2f}\n\n"
            for c in self.citations
        )

    def render(self) -> str:
        return f"Summary: {self.summary}\n\nCitations:\n{self.join_citations()}"


EXTRACTION_TOOL_NAME = SearchExtraction.__name__
