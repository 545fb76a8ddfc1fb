"""Embedding client — single place to swap embedding providers.

Supports two providers:

1. **HuggingFace** (default) — a local sentence-transformer model.
2. **OpenAI** — set ``EMBEDDING_PROVIDER=openai`` and ``OPENAI_API_KEY``.

The pipeline never assumes a vector length: :meth:`EmbeddingClient.probe_dimension`
asks the live model before any collection is created.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rag_ingest.exceptions import ConfigError, EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_ingest.config import Settings

logger = logging.getLogger(__name__)

PROBE_TEXT = "dimension probe"


class EmbeddingClient:
    """Embed one text at a time through a LangChain ``Embeddings`` object.

    Parameters
    ----------
    embeddings:
        Any LangChain embeddings implementation.
    model_name:
        Identifier used in log lines.
    """

    def __init__(self, embeddings: Embeddings, model_name: str = "") -> None:
        self._embeddings = embeddings
        self.model_name = model_name or type(embeddings).__name__

    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises
        ------
        EmbeddingError
            When the provider fails or returns an empty vector.
        """
        try:
            vector = self._embeddings.embed_query(text)
        except Exception as exc:
            raise EmbeddingError(f"{self.model_name} failed to embed text: {exc}") from exc
        if not vector:
            raise EmbeddingError(f"{self.model_name} returned an empty embedding")
        return [float(value) for value in vector]

    def probe_dimension(self) -> int:
        """Embed a probe string and return the live vector length."""
        dimension = len(self.embed(PROBE_TEXT))
        logger.info("Embedding model %s produces %d-dimensional vectors", self.model_name, dimension)
        return dimension


def get_embedding_client(settings: Settings) -> EmbeddingClient:
    """Build the configured embedding client."""
    if settings.embedding_provider == "openai":
        if not settings.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is required when EMBEDDING_PROVIDER=openai")
        from langchain_openai import OpenAIEmbeddings

        embeddings: Embeddings = OpenAIEmbeddings(
            model=settings.embedding_model,
            api_key=settings.openai_api_key,
        )
    else:
        from langchain_huggingface import HuggingFaceEmbeddings

        embeddings = HuggingFaceEmbeddings(model_name=settings.embedding_model)

    logger.info("Using %s embeddings: %s", settings.embedding_provider, settings.embedding_model)
    return EmbeddingClient(embeddings, model_name=settings.embedding_model)
