"""Unit tests for the embedding client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from rag_ingest.config import Settings
from rag_ingest.exceptions import ConfigError, EmbeddingError
from rag_ingest.ingestion.embedder import PROBE_TEXT, EmbeddingClient, get_embedding_client


class TestEmbeddingClient:
    def test_embed_returns_floats(self) -> None:
        embeddings = MagicMock()
        embeddings.embed_query.return_value = [1, 0, 0.5]

        vector = EmbeddingClient(embeddings, model_name="m").embed("hello")

        assert vector == [1.0, 0.0, 0.5]
        assert all(isinstance(v, float) for v in vector)
        embeddings.embed_query.assert_called_once_with("hello")

    def test_empty_vector_is_an_error(self) -> None:
        embeddings = MagicMock()
        embeddings.embed_query.return_value = []

        with pytest.raises(EmbeddingError, match="empty"):
            EmbeddingClient(embeddings, model_name="m").embed("hello")

    def test_provider_failure_is_wrapped(self) -> None:
        embeddings = MagicMock()
        embeddings.embed_query.side_effect = TimeoutError("read timed out")

        with pytest.raises(EmbeddingError, match="read timed out") as excinfo:
            EmbeddingClient(embeddings, model_name="m").embed("hello")
        assert isinstance(excinfo.value.__cause__, TimeoutError)

    def test_probe_dimension(self) -> None:
        embeddings = MagicMock()
        embeddings.embed_query.return_value = [0.0] * 384

        assert EmbeddingClient(embeddings).probe_dimension() == 384
        embeddings.embed_query.assert_called_once_with(PROBE_TEXT)

    def test_default_model_name(self) -> None:
        assert EmbeddingClient(MagicMock()).model_name == "MagicMock"


class TestGetEmbeddingClient:
    def test_openai_requires_key(self) -> None:
        settings = Settings(embedding_provider="openai", openai_api_key="")

        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            get_embedding_client(settings)

    @patch("langchain_openai.OpenAIEmbeddings")
    def test_openai_provider(self, mock_cls: MagicMock) -> None:
        settings = Settings(
            embedding_provider="openai",
            openai_api_key="sk-test",
            embedding_model="text-embedding-3-small",
        )

        client = get_embedding_client(settings)

        mock_cls.assert_called_once_with(model="text-embedding-3-small", api_key="sk-test")
        assert client.model_name == "text-embedding-3-small"

    @patch("langchain_huggingface.HuggingFaceEmbeddings")
    def test_huggingface_provider(self, mock_cls: MagicMock) -> None:
        settings = Settings(embedding_provider="huggingface", embedding_model="sentence-transformers/x")

        get_embedding_client(settings)

        mock_cls.assert_called_once_with(model_name="sentence-transformers/x")
