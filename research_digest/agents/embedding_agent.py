"""
Embedding agent: turns text into one vector per token-budgeted chunk.
"""

from typing import Any, List, Optional

from langchain_openai import OpenAIEmbeddings

from ..config.settings import Settings, get_settings
from ..errors import ConfigurationError, EmbeddingError
from ..logging_config import get_logger
from ..tokens import chunk_by_tokens

logger = get_logger("research_digest.embeddings")


class EmbeddingAgent:
    """Embeds text through an OpenAI-compatible embeddings endpoint."""

    def __init__(
        self,
        model_id: str,
        context_window: int,
        base_url: str,
        api_key: str = "",
        embeddings: Optional[Any] = None,
    ):
        if not model_id:
            raise ConfigurationError("Embedding agent has no model configured")
        self.model_id = model_id
        self.context_window = context_window
        self.base_url = base_url
        self.api_key = api_key
        self._embeddings = embeddings

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EmbeddingAgent":
        settings = settings or get_settings()
        embedding_settings = settings.embedding_agent
        return cls(
            model_id=embedding_settings.model_id,
            context_window=embedding_settings.context_window,
            base_url=embedding_settings.base_url,
            api_key=settings.api_keys.model_api_key.get_secret_value(),
        )

    @property
    def embeddings(self) -> Any:
        if self._embeddings is None:
            # Non-OpenAI endpoints do not understand tiktoken-split input
            self._embeddings = OpenAIEmbeddings(
                model=self.model_id,
                openai_api_key=self.api_key,
                openai_api_base=self.base_url,
                check_embedding_ctx_length=False,
            )
        return self._embeddings

    async def embed(self, text: str) -> List[List[float]]:
        """
        Embed ``text`` chunk by chunk.

        Args:
            text: Text to embed

        Returns:
            One vector per chunk (empty list for blank text)

        Raises:
            EmbeddingError: the embeddings endpoint failed
        """
        chunks = chunk_by_tokens(text, self.context_window)
        if not chunks:
            return []

        try:
            vectors = await self.embeddings.aembed_documents(chunks)
        except Exception as e:
            raise EmbeddingError(
                f"Error embedding {len(chunks)} chunks: {e}",
                context={"model": self.model_id},
            ) from e

        logger.debug(f"Embedded {len(chunks)} chunks with {self.model_id}")
        return [list(map(float, vector)) for vector in vectors if vector]
