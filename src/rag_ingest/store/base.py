"""Abstract base class for vector-store backends.

Adding a new backend (Astra DB, Qdrant, pgvector …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract
methods. The ingestion pipeline is backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_ingest.models import CollectionDescriptor, VectorRecord


class VectorStoreBase(ABC):
    """Backend-agnostic, append-only vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def create_collection(self, descriptor: CollectionDescriptor) -> None:
        """Create the collection described by *descriptor*.

        Raises
        ------
        CollectionExistsError
            When a collection with that name is already present.
        StoreError
            For any other failure.
        """
        ...

    @abstractmethod
    def describe_collection(self, name: str) -> CollectionDescriptor | None:
        """Return the declared schema of *name*, or ``None`` if unknown."""
        ...

    @abstractmethod
    def upsert(self, record: VectorRecord) -> str:
        """Persist *record* into :attr:`collection_name` and return its id.

        Raises
        ------
        StoreError
            When the backend rejects or fails the write.
        """
        ...

    # -- optional overrides ---------------------------------------------------

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        return True
