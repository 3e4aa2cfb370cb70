"""
Centralized configuration for the research digest pipeline.
Uses Pydantic Settings with environment variable support.
"""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_version() -> str:
    """Load version from version.txt file."""
    version_file = Path(__file__).parent.parent.parent / "version.txt"
    if version_file.exists():
        return version_file.read_text().strip()
    return "0.0.0"


DEFAULT_EXTRACTION_INSTRUCTIONS = (
    "Summarize this Article and extract relevant info. "
    "IF not Relevant say 'No results found' and exit.\n\n"
    "**YOU MUST USE THE TOOLS PROVIDED**"
)


class SummaryAgentSettings(BaseSettings):
    """Summary agent configuration.

    Every entry in ``base_urls`` becomes one worker identity in the
    summarization pool, so two endpoints (e.g. two Ollama ports) give two
    parallel workers.
    """

    name: str = Field(default="summarizer")
    model_id: str = Field(
        default="qwen3:8b",
        description="Chat model used for extraction and summarization"
    )
    context_window: int = Field(
        default=8192,
        ge=512,
        description="Model context window in tokens"
    )
    base_urls: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:11434/v1",
            "http://localhost:11436/v1",
        ],
        description="OpenAI-compatible endpoints, one pool worker per entry"
    )
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000)
    request_timeout: int = Field(
        default=600,
        description="Seconds before a hung model call is abandoned"
    )
    system_prompt: str = Field(
        default=(
            "You extract facts from web pages. Always answer by calling the "
            "SearchExtraction tool."
        )
    )
    reply_language: str = Field(
        default="English",
        description="Language the user speaks, sent with every user turn"
    )


class EmbeddingAgentSettings(BaseSettings):
    """Embedding agent configuration."""

    model_id: str = Field(default="nomic-embed-text")
    context_window: int = Field(
        default=2048,
        ge=128,
        description="Tokens per embedded chunk"
    )
    base_url: str = Field(default="http://localhost:11434/v1")


class WebSearchSettings(BaseSettings):
    """Web search and scraping configuration."""

    engine: str = Field(
        default="duckduckgo",
        description="Search engine: 'duckduckgo' or 'searxng'"
    )
    searxng_url: str = Field(
        default="http://localhost:8080",
        description="SearXNG instance URL"
    )
    search_timeout: int = Field(default=30)
    scrape_timeout: int = Field(default=10)
    max_content_length: int = Field(
        default=500000,
        description="Maximum HTML characters processed per page"
    )
    request_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds to wait before each search request"
    )


class ResearchSettings(BaseSettings):
    """Research pipeline configuration."""

    relevancy_threshold: float = Field(
        default=50.0,
        ge=0.0,
        le=100.0,
        description="Minimum relevance percentage a result must reach"
    )
    pages: int = Field(default=1, ge=1, le=10)
    context_percentage: float = Field(
        default=75.0,
        gt=0.0,
        le=100.0,
        description="Share of the summary agent context window used as budget"
    )
    max_compression_rounds: int = Field(
        default=3,
        ge=0,
        description="Upper bound on re-summarization rounds for one page"
    )
    max_extraction_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts per chunk before it is dropped"
    )
    queue_size: int = Field(
        default=8,
        ge=1,
        description="Bound of the summarization work queue"
    )
    extraction_instructions: str = Field(default=DEFAULT_EXTRACTION_INSTRUCTIONS)
    compression_instructions: str = Field(
        default="Summarize this Article and extract relevant info"
    )


class APIKeysSettings(BaseSettings):
    """API keys and credentials."""

    model_api_key: SecretStr = Field(
        default=SecretStr("ollama"),
        description="Key sent to the OpenAI-compatible model endpoints"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="RESEARCH_DIGEST_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    summary_agent: SummaryAgentSettings = Field(default_factory=SummaryAgentSettings)
    embedding_agent: EmbeddingAgentSettings = Field(default_factory=EmbeddingAgentSettings)
    web_search: WebSearchSettings = Field(default_factory=WebSearchSettings)
    research: ResearchSettings = Field(default_factory=ResearchSettings)
    api_keys: APIKeysSettings = Field(default_factory=APIKeysSettings)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
