"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from rag_ingest.ingestion.embedder import EmbeddingClient
from tests.fakes import FakeEmbeddings, InMemoryVectorStore


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings(dimension=8)


@pytest.fixture()
def embedder(fake_embeddings: FakeEmbeddings) -> EmbeddingClient:
    return EmbeddingClient(fake_embeddings, model_name="fake-embedder")


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()
