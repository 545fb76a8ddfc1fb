"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from rag_ingest.exceptions import CollectionExistsError, StoreError
from rag_ingest.models import CollectionDescriptor, SimilarityMetric, VectorRecord
from rag_ingest.store.base import VectorStoreBase

logger = logging.getLogger(__name__)

_SPACE_MAP = {
    SimilarityMetric.COSINE: "cosine",
    SimilarityMetric.EUCLIDEAN: "l2",
    SimilarityMetric.DOT_PRODUCT: "ip",
}
_METRIC_MAP = {space: metric for metric, space in _SPACE_MAP.items()}


def _is_already_exists(exc: Exception) -> bool:
    # The exception type changed across chromadb releases; the message did not.
    return type(exc).__name__ == "UniqueConstraintError" or "already exists" in str(exc).lower()


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection written to by :meth:`upsert`.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built Chroma client; when given, *host* and *port* are ignored.
    """

    def __init__(
        self,
        collection_name: str,
        *,
        host: str = "localhost",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection: Any = None

    # -- VectorStoreBase overrides --------------------------------------------

    def create_collection(self, descriptor: CollectionDescriptor) -> None:
        try:
            self._client.create_collection(
                name=descriptor.name,
                metadata={
                    "hnsw:space": _SPACE_MAP[descriptor.metric],
                    "dimension": descriptor.dimension,
                },
            )
        except Exception as exc:
            if _is_already_exists(exc):
                raise CollectionExistsError(f"Collection {descriptor.name!r} already exists") from exc
            raise StoreError(f"Failed to create collection {descriptor.name!r}: {exc}") from exc
        logger.info(
            "Created collection %r (dim=%d, metric=%s)",
            descriptor.name, descriptor.dimension, descriptor.metric.value,
        )

    def describe_collection(self, name: str) -> CollectionDescriptor | None:
        try:
            collection = self._client.get_collection(name=name)
        except Exception:
            logger.debug("Collection %r not found", name, exc_info=True)
            return None
        meta = collection.metadata or {}
        dimension = meta.get("dimension")
        if not dimension:
            return None
        return CollectionDescriptor(
            name=name,
            dimension=int(dimension),
            metric=_METRIC_MAP.get(meta.get("hnsw:space", "l2"), SimilarityMetric.EUCLIDEAN),
        )

    def upsert(self, record: VectorRecord) -> str:
        record_id = record.record_id()
        try:
            if self._collection is None:
                self._collection = self._client.get_collection(name=self.collection_name)
            self._collection.upsert(
                ids=[record_id],
                embeddings=[record.vector],
                documents=[record.text],
                metadatas=[record.metadata],
            )
        except Exception as exc:
            raise StoreError(f"Upsert into {self.collection_name!r} failed: {exc}") from exc
        return record_id

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
