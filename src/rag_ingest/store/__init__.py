"""
Store — the vector database the pipeline writes into.

Public surface
--------------
- :class:`VectorStoreBase` — abstract backend (subclass for Astra, Qdrant, …).
- :class:`ChromaVectorStore` — default Chroma backend.
"""

from rag_ingest.store.base import VectorStoreBase

__all__ = [
    "ChromaVectorStore",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from rag_ingest.store.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
