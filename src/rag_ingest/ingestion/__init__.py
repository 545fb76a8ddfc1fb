"""
Ingestion — fetch, checkpoint, chunk, embed and store.

This module is responsible for the fault-tolerant pipeline that turns
declared sources (paginated JSON APIs, rendered HTML pages, PDF
documents) into embedded chunks stored in a vector database.

Public surface
--------------
- :class:`IngestionOrchestrator` — drives the per-source pipeline.
- :class:`RateLimitedFetcher` — HTTP with exponential backoff.
- :class:`RetryPolicy` — retry combinator shared by fetch and embed/upsert.
- :class:`BoundedWorkPool` — caps concurrent embed + upsert tasks.
- :class:`Chunker` — fixed-window chunking with overlap.
- :class:`JsonProgressStore`, :class:`SqliteProgressStore` — checkpoints.
"""

from rag_ingest.ingestion.chunker import Chunker
from rag_ingest.ingestion.fetcher import RateLimitedFetcher
from rag_ingest.ingestion.orchestrator import IngestionOrchestrator, OrchestratorState, RunReport
from rag_ingest.ingestion.pool import BoundedWorkPool, Task, TaskOutcome
from rag_ingest.ingestion.progress import JsonProgressStore, ProgressStore, SqliteProgressStore
from rag_ingest.ingestion.retry import RetryPolicy

__all__ = [
    "BoundedWorkPool",
    "Chunker",
    "IngestionOrchestrator",
    "JsonProgressStore",
    "OrchestratorState",
    "ProgressStore",
    "RateLimitedFetcher",
    "RetryPolicy",
    "RunReport",
    "SqliteProgressStore",
    "Task",
    "TaskOutcome",
]
