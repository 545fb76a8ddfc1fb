"""rag_ingest — resumable, rate-limited ingestion of remote content into a vector store."""

__version__ = "0.1.0"
